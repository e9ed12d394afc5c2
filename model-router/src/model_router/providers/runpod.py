"""RunPod serverless adapter.

Calls ``POST {endpoint}/{endpoint_id}/runsync`` with an ``input`` envelope.
Text tasks send sampling parameters; media tasks (image generation) send
dimensions and inference steps instead.
"""

from typing import Any, Collection

from model_router.errors import ConfigurationError, UpstreamProtocolError
from model_router.providers.base import (
    ParsedResponse,
    ProviderAdapter,
    resolve_parameters,
)
from model_router.providers.models import (
    GenerationRequest,
    ProviderDescriptor,
    ProviderKind,
)


DEFAULT_RUNPOD_ENDPOINT = "https://api.runpod.ai/v2"

MEDIA_TASK_TYPES = frozenset({"image", "image-generation", "video", "audio"})

# Keys RunPod workers commonly put their text under
_TEXT_KEYS = ("text", "generated_text", "output", "response", "content", "tokens")


def extract_output_text(output: Any) -> str:
    """Flatten a worker's ``output`` field into text.

    Raises:
        ValueError: If no text can be found.
    """
    if isinstance(output, str):
        return output
    if isinstance(output, list):
        return "".join(extract_output_text(item) for item in output)
    if isinstance(output, dict):
        if output.get("choices"):
            return extract_output_text(output["choices"][0])
        for key in _TEXT_KEYS:
            if key in output:
                return extract_output_text(output[key])
    raise ValueError(f"no text in output of type {type(output).__name__}")


class RunPodAdapter(ProviderAdapter):
    """Adapter for RunPod serverless endpoints."""

    kind = ProviderKind.RUNPOD
    requires_api_key = True

    def __init__(self, media_task_types: Collection[str] = MEDIA_TASK_TYPES) -> None:
        self._media_task_types = frozenset(t.lower() for t in media_task_types)

    def validate(self, descriptor: ProviderDescriptor) -> None:
        super().validate(descriptor)
        if not descriptor.options.get("endpoint_id"):
            raise ConfigurationError(
                f"Provider '{descriptor.name}' (runpod) requires options.endpoint_id"
            )

    def _job_url(self, descriptor: ProviderDescriptor) -> str:
        endpoint_id = descriptor.options["endpoint_id"]
        return f"{descriptor.endpoint.rstrip('/')}/{endpoint_id}"

    def health_url(self, descriptor: ProviderDescriptor) -> str:
        if descriptor.health_endpoint:
            return descriptor.health_endpoint
        return f"{self._job_url(descriptor)}/health"

    def build_url(
        self,
        descriptor: ProviderDescriptor,
        request: GenerationRequest,
    ) -> str:
        return f"{self._job_url(descriptor)}/runsync"

    def is_media_task(self, request: GenerationRequest) -> bool:
        return request.task_type in self._media_task_types

    def build_payload(
        self,
        descriptor: ProviderDescriptor,
        request: GenerationRequest,
    ) -> dict[str, Any]:
        if self.is_media_task(request):
            job_input: dict[str, Any] = {
                "prompt": request.prompt,
                "width": request.parameters.get("width", 512),
                "height": request.parameters.get("height", 512),
                "num_inference_steps": request.parameters.get("steps", 20),
            }
        else:
            params = resolve_parameters(descriptor, request)
            job_input = {
                "prompt": request.prompt,
                "max_tokens": params.max_tokens,
                "temperature": params.temperature,
                "model": descriptor.model or "default",
            }
        return {"input": job_input}

    def parse_response(
        self,
        descriptor: ProviderDescriptor,
        data: Any,
    ) -> ParsedResponse:
        status = data.get("status")
        if status != "COMPLETED":
            raise UpstreamProtocolError(
                message=f"Job {data.get('id')} finished with status {status}: "
                f"{data.get('error') or 'no output'}",
                provider=descriptor.name,
            )

        output = data["output"]
        usage: dict[str, Any] = {}
        if isinstance(output, dict) and isinstance(output.get("usage"), dict):
            usage.update(output["usage"])
        for source, target in (
            ("id", "job_id"),
            ("delayTime", "delay_time_ms"),
            ("executionTime", "execution_time_ms"),
        ):
            if data.get(source) is not None:
                usage[target] = data[source]

        return ParsedResponse(
            content=extract_output_text(output),
            usage=usage,
            model=descriptor.model,
        )
