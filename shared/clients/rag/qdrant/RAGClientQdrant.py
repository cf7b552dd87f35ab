from typing import Any
import uuid

from shared.helper.HelperConfig import HelperConfig
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.SearchHit import CollectionInfo, SearchHit
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.models.config import EnvConfig


class RAGClientQdrant(RAGClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default="documents", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default="documents")
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"api-key": f"{self._api_key}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_collection(self) -> str:
        return f"/collections/{self._collection_name}"

    def _get_endpoint_check_collection_existence(self) -> str:
        return f"/collections/{self._collection_name}/exists"

    def _get_endpoint_points(self) -> str:
        return f"/collections/{self._collection_name}/points"

    def _get_endpoint_delete_points(self) -> str:
        return f"/collections/{self._collection_name}/points/delete"

    def _get_endpoint_search(self) -> str:
        return f"/collections/{self._collection_name}/points/search"

    def _get_endpoint_scroll(self) -> str:
        return f"/collections/{self._collection_name}/points/scroll"

    def _get_endpoint_count(self) -> str:
        return f"/collections/{self._collection_name}/points/count"

    ################ ID MAPPING ##################
    def to_backend_point_id(self, point_id: str) -> str:
        # qdrant only accepts unsigned ints and UUIDs
        try:
            return str(uuid.UUID(point_id))
        except ValueError:
            return str(uuid.uuid5(uuid.NAMESPACE_OID, point_id))

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def build_filter(self, equality_filter: dict[str, Any] | None) -> dict | None:
        if not equality_filter:
            return None
        return {"must": [{"key": key, "match": {"value": value}} for key, value in equality_filter.items()]}

    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        return {"vectors": {"size": vector_size, "distance": distance}}

    def get_upsert_payload(self, points: list[VectorPoint]) -> dict:
        return {
            "points": [
                {
                    "id": self.to_backend_point_id(point.id),
                    "vector": point.vector,
                    "payload": point.payload.model_dump(),
                }
                for point in points
            ]
        }

    def get_delete_payload(self, filter: dict) -> dict:
        return {"filter": filter}

    def get_delete_by_ids_payload(self, ids: list[str]) -> dict:
        return {"points": [self.to_backend_point_id(point_id) for point_id in ids]}

    def get_search_payload(self, vector: list[float], limit: int, filter: dict | None) -> dict:
        payload = {"vector": vector, "limit": limit, "with_payload": True}
        if filter:
            payload["filter"] = filter
        return payload

    def get_scroll_payload(self, filter: dict | None, with_payload: bool | list | dict, with_vector: bool | list, limit: int | None = None, offset: str | int | None = None) -> dict:
        payload = {
            "limit": limit,
            "with_payload": with_payload,
            "with_vector": with_vector,
        }
        if filter:
            payload["filter"] = filter
        if offset is not None:
            payload["offset"] = offset
        return payload

    def get_count_payload(self, filter: dict | None) -> dict:
        payload: dict = {"exact": True}
        if filter:
            payload["filter"] = filter
        return payload

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_search_hits(self, raw_response: dict) -> list[SearchHit]:
        return [
            SearchHit(id=str(hit.get("id")), score=hit.get("score", 0.0), payload=hit.get("payload") or {})
            for hit in raw_response.get("result", [])
        ]

    def extract_collection_info(self, raw_response: dict) -> CollectionInfo:
        result = raw_response.get("result", {})
        vectors = result.get("config", {}).get("params", {}).get("vectors", {})
        # named vectors are a dict of configs without a top-level size
        return CollectionInfo(
            points_count=result.get("points_count") or 0,
            vector_size=vectors.get("size"),
            distance=vectors.get("distance"),
        )

    def extract_scroll_content(self, raw_response: dict) -> dict:
        result = raw_response.get("result", {})
        return {
            "result": result.get("points", []),
            "status": raw_response.get("status", "ok"),
            "time": raw_response.get("time", 0),
        }

    def extract_next_page_offset(self, raw_response: dict) -> str | int | None:
        return raw_response.get("result", {}).get("next_page_offset")
