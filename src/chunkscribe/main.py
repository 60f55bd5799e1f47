from __future__ import annotations

import logging

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from chunkscribe.config import Settings, load_settings
from chunkscribe.http_api import TranscribeRoutes
from chunkscribe.mcp_tools import ToolRegistry
from chunkscribe.pipeline import TranscriptionPipeline
from chunkscribe.services.resolver import ResolverClient
from chunkscribe.services.transcriber import WorkersAITranscriber

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
logger = logging.getLogger(__name__)


class AppRuntime:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.resolver = ResolverClient(settings.resolver_url, settings.resolver_api_key)
        self.transcriber = WorkersAITranscriber(
            account_id=settings.cloudflare_account_id,
            api_token=settings.cloudflare_api_token,
            model=settings.whisper_model,
            timeout_seconds=settings.transcribe_timeout_seconds,
        )
        self.pipeline = TranscriptionPipeline(
            resolver=self.resolver,
            transcriber=self.transcriber,
            chunking=settings.chunking,
            fetch_timeout_seconds=settings.fetch_timeout_seconds,
        )


def create_app(runtime: AppRuntime) -> FastMCP:
    mcp = FastMCP(name="chunkscribe")

    ToolRegistry(runtime.pipeline).register(mcp)
    TranscribeRoutes(runtime.pipeline).register(mcp, runtime.settings.transcribe_path)

    @mcp.custom_route(runtime.settings.health_path, methods=["GET"])
    async def health(_: Request) -> JSONResponse:
        return JSONResponse(
            {
                "ok": True,
                "resolver_configured": runtime.settings.resolver_url is not None,
                "model": runtime.settings.whisper_model,
                "mcp_path": runtime.settings.mcp_path,
                "transcribe_path": runtime.settings.transcribe_path,
            }
        )

    return mcp


def cli() -> None:
    settings = load_settings()
    runtime = AppRuntime(settings)

    app = create_app(runtime)
    logger.info("Starting server on %s:%s (MCP at %s)", settings.host, settings.port, settings.mcp_path)
    app.run(
        transport="http",
        host=settings.host,
        port=settings.port,
        path=settings.mcp_path,
    )


if __name__ == "__main__":
    cli()
