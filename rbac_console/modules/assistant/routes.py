from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from rbac_console.config.settings import settings
from rbac_console.core.dependencies import require_admin
from rbac_console.core.rate_limit import limiter
from rbac_console.core.validation import format_validation_errors
from rbac_console.database.supabase_client import get_supabase
from rbac_console.modules.assistant.context_manager import RBACContextManager, get_context_manager
from rbac_console.modules.assistant.executor import CommandExecutor
from rbac_console.modules.assistant.gemini_client import GeminiClient, get_gemini_client
from rbac_console.modules.assistant.schemas import (
    AICommand, AICommandResult, AIResponse, AvailabilityResponse, HelpResponse,
    ProcessCommandRequest, RBACContext, SuggestionsResponse
)
from rbac_console.modules.assistant.service import AIService, EXAMPLE_SUGGESTIONS, service_unavailable_response
from supabase import Client
from typing import Any, Dict
import logging

logger = logging.getLogger(__name__)

router = APIRouter(tags=["assistant"])


def get_rbac_context_manager(supabase: Client = Depends(get_supabase)) -> RBACContextManager:
    return get_context_manager(supabase)


def get_ai_service(
    client: GeminiClient = Depends(get_gemini_client),
    context_manager: RBACContextManager = Depends(get_rbac_context_manager),
) -> AIService:
    return AIService(client, context_manager, settings.ai_confidence_threshold)


def get_command_executor(supabase: Client = Depends(get_supabase)) -> CommandExecutor:
    return CommandExecutor(supabase)


def _command_error(status_code: int, message: str, error: str, suggestions=None) -> JSONResponse:
    body = AICommandResult(success=False, message=message, error=error, suggestions=suggestions)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _execute(
    executor: CommandExecutor,
    context_manager: RBACContextManager,
    command: AICommand,
) -> Dict[str, Any]:
    result = executor.execute(command)
    if result.success:
        context_manager.invalidate()
    return result.model_dump()


@router.post("/ai-command", response_model=AICommandResult)
@limiter.limit(settings.ai_command_rate_limit)
async def ai_command(
    request: Request,
    user_data: Dict = Depends(require_admin),
    service: AIService = Depends(get_ai_service),
    executor: CommandExecutor = Depends(get_command_executor),
):
    """Run a natural language command, or execute a previously previewed command object.

    ``{"command": "give Manager admin_access"}`` is parsed, validated and executed.
    ``{"command": {"type": ..., "parameters": {...}}}`` skips the model entirely.
    """
    try:
        body = await request.json()
    except ValueError:
        return _command_error(
            status.HTTP_400_BAD_REQUEST,
            "Invalid JSON in request body",
            "Request body must be valid JSON",
            ["Check your request format"],
        )

    command = body.get("command") if isinstance(body, dict) else None

    try:
        if isinstance(command, dict) and "type" in command:
            try:
                parsed = AICommand.model_validate(command)
            except ValidationError as e:
                details = "; ".join(f"{d['field']}: {d['message']}" for d in format_validation_errors(e))
                return _command_error(status.HTTP_400_BAD_REQUEST, "Invalid command format", details)
            result = _execute(executor, service.context_manager, parsed)
            return {**result, "parsedCommand": parsed}

        if not isinstance(command, str) or not command.strip():
            return _command_error(
                status.HTTP_400_BAD_REQUEST,
                "Invalid command format",
                "Command must be a non-empty string or parsed command object",
                EXAMPLE_SUGGESTIONS,
            )
        if len(command) > settings.ai_command_max_length:
            return _command_error(
                status.HTTP_400_BAD_REQUEST,
                "Command is too long",
                f"Command must be at most {settings.ai_command_max_length} characters",
                ["Split the request into several shorter commands"],
            )

        if not service.is_available():
            return _command_error(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                "AI service is currently unavailable",
                "Google Gemini API key is not configured",
                [
                    "Use the manual interface to manage permissions and roles",
                    "Contact your administrator to configure the AI service",
                ],
            )

        ai_response = await service.process_command(command.strip())
        if not ai_response.success or not ai_response.command:
            return {
                "success": False,
                "message": ai_response.message,
                "error": ai_response.error,
                "suggestions": ai_response.suggestions,
                "parsedCommand": None,
            }

        result = _execute(executor, service.context_manager, ai_response.command)
        return {
            **result,
            "parsedCommand": ai_response.command,
            "suggestions": [] if result["success"] else (result["suggestions"] or ai_response.suggestions),
        }
    except Exception as e:
        logger.exception("Error processing AI command")
        return _command_error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error while processing command",
            str(e) or e.__class__.__name__,
            [
                "Try rephrasing your command",
                "Check if the AI service is properly configured",
                "Use the manual interface as an alternative",
            ],
        )


@router.post("/ai-service/process", response_model=AIResponse, response_model_exclude_none=True)
async def process_command(
    payload: ProcessCommandRequest,
    user_data: Dict = Depends(require_admin),
    service: AIService = Depends(get_ai_service),
):
    """Parse and validate a command for preview; nothing is written"""
    if not payload.command.strip() or len(payload.command) > settings.ai_command_max_length:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "message": "Invalid command format",
                "error": "Command must be a non-empty string",
            },
        )
    if not service.is_available():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=service_unavailable_response().model_dump(exclude_none=True),
        )
    return await service.process_command(payload.command)


@router.get("/ai-service/suggestions", response_model=SuggestionsResponse)
async def get_suggestions(
    user_data: Dict = Depends(require_admin),
    service: AIService = Depends(get_ai_service),
):
    return {"suggestions": service.get_command_suggestions()}


@router.get("/ai-service/help", response_model=HelpResponse)
async def get_help(user_data: Dict = Depends(require_admin), service: AIService = Depends(get_ai_service)):
    return {"helpText": service.get_help_text()}


@router.get("/ai-service/availability", response_model=AvailabilityResponse)
async def get_availability(
    user_data: Dict = Depends(require_admin),
    service: AIService = Depends(get_ai_service),
):
    available = service.is_available()
    return {
        "available": available,
        "message": "AI service is available" if available else "Google Gemini API key not configured",
    }


@router.get("/ai-service/context", response_model=RBACContext)
async def get_context(user_data: Dict = Depends(require_admin), service: AIService = Depends(get_ai_service)):
    """Snapshot of the state the assistant reasons over"""
    return service.get_system_context()
