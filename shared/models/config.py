from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    Represents a single configuration parameter required by a client engine.

    Attributes:
        env_key (str): The raw key of the environment variable, without the "{TYPE}_{ENGINE}_" prefix.
        val_type (str): The expected type of the value. Supported types are "string", "number", "bool" and "list".
        default (str | int | bool | list | None): Default used when the variable is not set. If None, the variable is required and a ConfigurationError is raised if it is missing.
    """

    env_key: str
    val_type: str
    default: str | int | bool | list | None = None
