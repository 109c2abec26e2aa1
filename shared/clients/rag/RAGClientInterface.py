from abc import abstractmethod
from typing import Any
import json
import uuid

import httpx
from shared.clients.ClientInterface import ClientInterface
from shared.clients.rag.models.VectorPoint import VectorPoint

from shared.helper.HelperConfig import HelperConfig

# payload field every point carries and every delete filters on
DOC_ID_PAYLOAD_KEY = "doc_id"


class RAGClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.batch_size = helper_config.get_positive_int_val(f"{self.get_client_type().upper()}_BATCH_SIZE", default=512)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "rag"

    @abstractmethod
    def get_collection_name(self) -> str:
        """
        Returns the name of the collection the client writes to.
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_points(self) -> str:
        """
        Returns the endpoint path for points upsert requests.

        Returns:
            str: The endpoint path for points requests (e.g. "/collections/my_col/points")
        """
        pass

    @abstractmethod
    def _get_endpoint_delete_points(self) -> str:
        """
        Returns the endpoint path for deleting points by filter.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/delete")
        """
        pass

    @abstractmethod
    def _get_endpoint_check_collection_existence(self) -> str:
        """
        Returns the endpoint path for collection existence check requests.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/exists")
        """
        pass

    @abstractmethod
    def _get_endpoint_create_collection(self) -> str:
        """
        Returns the endpoint path for create collection requests.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col")
        """
        pass

    @abstractmethod
    def _get_endpoint_payload_index(self) -> str:
        """
        Returns the endpoint path for creating a payload field index.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/index")
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        """
        Builds the backend-specific request payload for creating the collection.

        Args:
            vector_size (int): The size of the vectors in the collection.
            distance (str): The distance metric for the vectors.

        Returns:
            dict: The payload for the create collection request.
        """
        pass

    @abstractmethod
    def get_payload_index_payload(self, field_name: str) -> dict:
        """
        Builds the backend-specific request payload for a keyword index on a payload field.

        Args:
            field_name (str): The payload field to index.

        Returns:
            dict: The payload for the index request.
        """
        pass

    @abstractmethod
    def get_delete_by_doc_ids_payload(self, doc_ids: list[str]) -> dict:
        """
        Builds the backend-specific request payload that deletes every point
        whose doc_id equals ANY of the given IDs.

        Args:
            doc_ids (list[str]): DocumentIDs whose points should be removed.

        Returns:
            dict: The payload for the delete request.
        """
        pass

    @abstractmethod
    def get_upsert_payload(self, points: list[dict[str, Any]]) -> dict:
        """
        Builds the backend-specific request payload for a points upsert.

        Args:
            points (list[dict[str, Any]]): Points with "id", "vector" and "payload".

        Returns:
            dict: The payload for the upsert request.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_existence_check(self) -> bool:
        """Check if the collection exists in the rag backend.

        Returns:
            bool: True if the collection exists, False otherwise.
        """
        resp = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_check_collection_existence(),
            raise_on_error=True,
        )
        return bool(resp.json().get("result", {}).get("exists"))

    async def do_create_collection(self, vector_size: int, distance: str = "Cosine") -> httpx.Response:
        """Create the collection in the rag backend.

        Args:
            vector_size (int): The size of the vectors in the collection.
            distance (str): The distance metric for the vectors.

        Returns:
            httpx.Response: The response from the create collection request.
        """
        return await self.do_request(
            method="PUT",
            json=self.get_create_collection_payload(vector_size, distance),
            endpoint=self._get_endpoint_create_collection(),
            raise_on_error=True,
        )

    async def do_create_payload_index(self, field_name: str = DOC_ID_PAYLOAD_KEY) -> httpx.Response:
        """Create a keyword index on a payload field so filtered deletes stay cheap.

        Args:
            field_name (str): The payload field to index.

        Returns:
            httpx.Response: The response from the index request.
        """
        return await self.do_request(
            method="PUT",
            json=self.get_payload_index_payload(field_name),
            params={"wait": "true"},
            endpoint=self._get_endpoint_payload_index(),
            raise_on_error=True,
        )

    async def do_ensure_collection(self, vector_size: int, distance: str = "Cosine") -> bool:
        """Create the collection and its doc_id index unless the collection already exists.

        Args:
            vector_size (int): The size of the vectors in the collection.
            distance (str): The distance metric for the vectors.

        Returns:
            bool: True if the collection was created, False if it already existed.
        """
        if await self.do_existence_check():
            self.logging.info("RAG collection '%s' already exists.", self.get_collection_name())
            return False
        await self.do_create_collection(vector_size=vector_size, distance=distance)
        await self.do_create_payload_index(DOC_ID_PAYLOAD_KEY)
        self.logging.info(
            "Created RAG collection '%s' (size=%d, distance=%s).",
            self.get_collection_name(), vector_size, distance, color="green",
        )
        return True

    async def do_delete_by_doc_ids(self, doc_ids: list[str]) -> None:
        """Delete all points belonging to the given DocumentIDs.

        Issues one filtered delete per batch of at most batch_size IDs; each
        filter matches a point whose doc_id equals any ID of the batch. No
        request is sent for an empty list.

        Args:
            doc_ids (list[str]): DocumentIDs whose points should be removed.

        Raises:
            ClientRequestError: If the backend rejects a delete request.
        """
        for batch_start in range(0, len(doc_ids), self.batch_size):
            batch = doc_ids[batch_start: batch_start + self.batch_size]
            await self.do_request(
                method="POST",
                content=json.dumps(self.get_delete_by_doc_ids_payload(batch)),
                params={"wait": "true"},
                endpoint=self._get_endpoint_delete_points(),
                additional_headers={"Content-Type": "application/json"},
                raise_on_error=True,
            )

    async def do_upsert_points(self, vectors: list[list[float]], payloads: list[VectorPoint]) -> int:
        """Upsert points into the collection in batches of at most batch_size.

        Every point gets a freshly generated UUID; point IDs are never reused
        or looked up, so replacing a note's points relies on a prior
        do_delete_by_doc_ids call.

        Args:
            vectors (list[list[float]]): One vector per point.
            payloads (list[VectorPoint]): One payload per point, same order as vectors.

        Returns:
            int: Number of points sent.

        Raises:
            ValueError: If vectors and payloads differ in length.
            ClientRequestError: If the backend rejects an upsert request.
        """
        if len(vectors) != len(payloads):
            raise ValueError(f"Got {len(vectors)} vectors for {len(payloads)} payloads.")
        for batch_start in range(0, len(vectors), self.batch_size):
            points = [
                {
                    "id": str(uuid.uuid4()),
                    "vector": vector,
                    "payload": payload.model_dump(mode="json"),
                }
                for vector, payload in zip(
                    vectors[batch_start: batch_start + self.batch_size],
                    payloads[batch_start: batch_start + self.batch_size],
                )
            ]
            await self.do_request(
                method="PUT",
                content=json.dumps(self.get_upsert_payload(points)),
                params={"wait": "true"},
                endpoint=self._get_endpoint_points(),
                additional_headers={"Content-Type": "application/json"},
                raise_on_error=True,
            )
        return len(vectors)
