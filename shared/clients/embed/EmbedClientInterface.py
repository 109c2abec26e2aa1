from abc import abstractmethod

from typing import Tuple
from shared.clients.ClientInterface import ClientInterface

from shared.helper.HelperConfig import HelperConfig


class EmbedClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # model and embedding config
        prefix = self.get_client_type().upper()
        self.embed_distance = helper_config.get_string_val(f"{prefix}_DISTANCE", default="Cosine")
        self.embed_model = helper_config.get_string_val(f"{prefix}_MODEL", default="text-embedding-3-small")
        self.embed_vector_size = helper_config.get_positive_int_val(f"{prefix}_VECTOR_SIZE", default=1536)
        self.embed_batch_size = helper_config.get_positive_int_val(f"{prefix}_BATCH_SIZE", default=100)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "embed"

    def get_vector_config(self) -> Tuple[int, str]:
        """
        Returns the vector dimension and distance metric the RAG collection must be created with.

        Returns:
            Tuple[int, str]: The configured vector size and distance metric (e.g. (1536, "Cosine")).
        """
        return self.embed_vector_size, self.embed_distance

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for embedding requests.

        Returns:
            str: The endpoint path for embedding requests (e.g. "/embeddings")
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            dict: JSON-serialisable request body (e.g. {"model": "...", "input": [...]}).
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            ValueError: If the response format is invalid or embeddings are empty.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Send a single embedding request and return the extracted vectors.

        Args:
            texts (list[str] | str): One or more texts to embed. Must fit into one request.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the inputs.

        Raises:
            ClientRequestError: If the backend returns a non-2xx status.
            ValueError: If the response does not contain one vector of the configured size per text.
        """
        texts = [texts] if isinstance(texts, str) else texts
        body = self.get_embed_payload(texts)
        response = await self.do_request(
            method="POST",
            endpoint=self.get_endpoint_embedding(),
            json=body,
            raise_on_error=True,
        )
        vectors = self.extract_embeddings_from_response(response.json())
        if len(vectors) != len(texts):
            raise ValueError(f"Embedding backend returned {len(vectors)} vectors for {len(texts)} texts.")
        for vector in vectors:
            if len(vector) != self.embed_vector_size:
                raise ValueError(
                    f"Embedding backend returned a vector of size {len(vector)}, expected {self.embed_vector_size}."
                )
        return vectors

    async def do_embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed an arbitrary number of texts, one request per batch of EMBED_BATCH_SIZE.

        The output has the same length and order as the input. A failing batch
        aborts the whole call; vectors from earlier batches are discarded.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            list[list[float]]: One vector per text, in input order.

        Raises:
            ClientRequestError: If any batch request returns a non-2xx status.
            ValueError: If any batch response is malformed.
        """
        vectors: list[list[float]] = []
        for batch_start in range(0, len(texts), self.embed_batch_size):
            batch = texts[batch_start: batch_start + self.embed_batch_size]
            self.logging.debug(
                "Embedding batch %d-%d of %d texts via %s.",
                batch_start, batch_start + len(batch), len(texts), self.get_engine_name(),
            )
            vectors.extend(await self.do_embed(batch))
        return vectors
