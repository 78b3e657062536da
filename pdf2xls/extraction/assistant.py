"""
OpenAI Assistants extraction provider.

The document is uploaded as an assistant file and attached to a thread
message; an assistant equipped with ``file_search`` answers with the invoice
fields as a JSON object following the bundled schema.
"""

from importlib import resources
from typing import Any, List, Optional

import openai
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from pdf2xls.extraction.base import ExtractionProvider, poll_until_done
from pdf2xls.models import ExtractionRequest, ProcessingStatus, RawFieldTree
from pdf2xls.normalization.record import parse_field_tree
from pdf2xls.utils.errors import ExtractionFailure, PollingExhausted, UploadFailure
from pdf2xls.utils.logging import LogContext, get_logger, log_performance

logger = get_logger(__name__)

RUN_STATUS_MAP = {
    "queued": ProcessingStatus.QUEUED,
    "in_progress": ProcessingStatus.PROCESSING,
    "requires_action": ProcessingStatus.PROCESSING,
    "cancelling": ProcessingStatus.PROCESSING,
    "completed": ProcessingStatus.DONE,
    "failed": ProcessingStatus.FAILED,
    "cancelled": ProcessingStatus.FAILED,
    "expired": ProcessingStatus.FAILED,
    "incomplete": ProcessingStatus.FAILED,
}

INSTRUCTIONS = (
    "You are supposed to analyze the PDFs given to you and always respond with ONLY "
    "a valid json object (without markdown codeblocks) filled in with information "
    "from the PDF, validated by a schema. Remove quotation marks in names. If "
    "information is missing in the PDF, leave the string empty. The schema: {schema}"
)

USER_PROMPT = "Please analyze the file"


def load_default_schema() -> str:
    """Return the bundled invoice response schema."""
    return resources.files("pdf2xls.resources").joinpath("schema.json").read_text(encoding="utf-8")


def map_run_status(raw_status: Optional[str]) -> ProcessingStatus:
    return RUN_STATUS_MAP.get((raw_status or "").lower(), ProcessingStatus.PROCESSING)


def message_text(message: Any) -> str:
    """Concatenate the text blocks of a thread message."""
    parts: List[str] = []
    for block in getattr(message, "content", None) or []:
        if getattr(block, "type", None) == "text":
            parts.append(block.text.value)
    return "".join(parts)


class AssistantThreadProvider(ExtractionProvider):
    """
    Field extraction through an OpenAI assistant thread.

    A fresh assistant, thread and file are created for every document and
    deleted afterwards, whether or not the run succeeded.
    """

    name = "OpenAI"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        poll_attempts: int = 11,
        poll_wait: Optional[wait_base] = None,
        message_attempts: int = 11,
        message_wait: Optional[wait_base] = None,
        client: Optional[openai.AsyncOpenAI] = None,
    ) -> None:
        """
        Initialize the provider.

        Args:
            api_key: OpenAI API key, ignored when ``client`` is given
            model: Model backing the assistant
            poll_attempts: Run status checks before giving up
            poll_wait: Wait strategy between run status checks
            message_attempts: Message fetches before giving up
            message_wait: Wait strategy between message fetches
            client: Preconfigured client
        """
        self.model = model
        self.poll_attempts = poll_attempts
        self.poll_wait = poll_wait or wait_exponential(multiplier=1, max=32)
        self.message_attempts = message_attempts
        self.message_wait = message_wait or wait_exponential(multiplier=1, max=32)
        self._api_key = api_key
        self._client = client

    @property
    def client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            self._client = openai.AsyncOpenAI(api_key=self._api_key)
        return self._client

    @log_performance
    async def extract(self, request: ExtractionRequest) -> RawFieldTree:
        schema = request.response_schema or load_default_schema()
        instructions = INSTRUCTIONS.format(schema=schema)

        with LogContext(provider=self.name, document=request.filename):
            try:
                uploaded = await self.client.files.create(
                    file=(request.filename, request.read_bytes()),
                    purpose="assistants",
                )
            except (openai.OpenAIError, OSError) as e:
                logger.error(f"Upload of {request.filename} to {self.name} failed: {e}")
                raise UploadFailure(self.name, str(e)) from e
            logger.info(f"File uploaded to {self.name}, file id {uploaded.id}")

            assistant_id = None
            thread_id = None
            try:
                assistant = await self.client.beta.assistants.create(
                    model=self.model,
                    instructions=instructions,
                    tools=[{"type": "file_search"}],
                )
                assistant_id = assistant.id

                thread = await self.client.beta.threads.create()
                thread_id = thread.id

                await self.client.beta.threads.messages.create(
                    thread_id,
                    role="user",
                    content=f"{USER_PROMPT}. {instructions}",
                    attachments=[{"file_id": uploaded.id, "tools": [{"type": "file_search"}]}],
                )
                run = await self.client.beta.threads.runs.create(thread_id, assistant_id=assistant_id)

                await self._wait_for_run(thread_id, run.id)
                payload = await self._fetch_answer(thread_id)
            except openai.OpenAIError as e:
                raise ExtractionFailure(
                    f"{self.name} assistant run failed: {e}",
                    {"provider": self.name, "thread_id": thread_id},
                ) from e
            finally:
                await self._cleanup(uploaded.id, thread_id, assistant_id)

            logger.info(f"Received final JSON response from {self.name}")
            return parse_field_tree(payload)

    async def _wait_for_run(self, thread_id: str, run_id: str) -> None:
        async def _status() -> ProcessingStatus:
            run = await self.client.beta.threads.runs.retrieve(run_id, thread_id=thread_id)
            return map_run_status(run.status)

        await poll_until_done(
            _status,
            provider=self.name,
            attempts=self.poll_attempts,
            wait=self.poll_wait,
            retry_on=(openai.APIConnectionError,),
        )

    async def _fetch_answer(self, thread_id: str) -> str:
        """
        Return the newest assistant answer in the thread.

        The thread is ready once it holds the user message and a non-empty
        reply.
        """

        async def _fetch() -> List[Any]:
            page = await self.client.beta.threads.messages.list(thread_id, order="desc")
            return list(page.data)

        def _not_ready(messages: List[Any]) -> bool:
            return len(messages) < 2 or not getattr(messages[0], "content", None)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.message_attempts),
            wait=self.message_wait,
            retry=retry_if_result(_not_ready) | retry_if_exception_type(openai.APIConnectionError),
        )
        try:
            messages = await retrying(_fetch)
        except RetryError as e:
            raise PollingExhausted(f"{self.name} messages", self.message_attempts) from e

        for message in messages:
            if getattr(message, "role", None) == "assistant":
                return message_text(message)
        raise ExtractionFailure(f"{self.name} thread has no assistant reply", {"thread_id": thread_id})

    async def _cleanup(
        self,
        file_id: str,
        thread_id: Optional[str],
        assistant_id: Optional[str],
    ) -> None:
        try:
            await self.client.files.delete(file_id)
        except openai.OpenAIError as e:
            logger.warning(f"Failed to delete file {file_id}: {e}")

        if thread_id:
            try:
                await self.client.beta.threads.delete(thread_id)
            except openai.OpenAIError as e:
                logger.warning(f"Failed to delete thread {thread_id}: {e}")

        if assistant_id:
            try:
                await self.client.beta.assistants.delete(assistant_id)
            except openai.OpenAIError as e:
                logger.warning(f"Failed to delete assistant {assistant_id}: {e}")
