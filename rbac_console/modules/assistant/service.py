import logging
import random
from typing import List

from rbac_console.modules.assistant.command_parser import CommandParser
from rbac_console.modules.assistant.context_manager import RBACContextManager
from rbac_console.modules.assistant.gemini_client import GeminiClient
from rbac_console.modules.assistant.schemas import AIResponse, RBACContext

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 6

FALLBACK_COMMAND_SUGGESTIONS = [
    "Create a new permission called read_users",
    "Create a new role called editor",
    "Give the admin role the read_users permission",
    "Remove write_posts permission from guest role",
    "Delete the old_permission permission",
    "Delete the unused_role role",
]

FALLBACK_SUGGESTIONS = [
    "Try rephrasing your command using simpler language",
    "Make sure you are using exact permission or role names",
    "Check if the permission or role you are referencing exists",
    'Use commands like "Create permission [name]" or "Give [role] the [permission] permission"',
]

EXAMPLE_SUGGESTIONS = [
    'Try: "Create a new permission called read_users"',
    'Or: "Give the admin role the read_users permission"',
]

HELP_TEXT = """Natural Language Commands Help:

CREATING ITEMS:
• "Create a new permission called [name]"
• "Add permission [name] with description [description]"
• "Create a new role called [name]"
• "Add role [name]"

MANAGING ASSOCIATIONS:
• "Give [role_name] the [permission_name] permission"
• "Assign [permission_name] to [role_name]"
• "Remove [permission_name] from [role_name]"
• "Take away [permission_name] permission from [role_name]"

DELETING ITEMS:
• "Delete the [permission_name] permission"
• "Remove permission [permission_name]"
• "Delete the [role_name] role"
• "Remove role [role_name]"

TIPS:
• Use exact names as they appear in your system
• Be specific about what you want to do
• You can use natural variations of these commands
• If a command fails, try rephrasing it"""


def error_response(error: Exception) -> AIResponse:
    return AIResponse(
        success=False,
        message="There was an issue processing your command. Please try again.",
        error=str(error) or error.__class__.__name__,
        suggestions=FALLBACK_SUGGESTIONS,
    )


def service_unavailable_response() -> AIResponse:
    return AIResponse(
        success=False,
        message="The AI assistant is currently unavailable. Please use the manual interface to manage your RBAC settings.",
        error="AI service is not configured or unavailable",
        suggestions=[
            "Use the Permissions tab to manage permissions manually",
            "Use the Roles tab to manage roles manually",
            "Use the Associations tab to link permissions to roles",
        ],
    )


class AIService:
    def __init__(
        self,
        client: GeminiClient,
        context_manager: RBACContextManager,
        confidence_threshold: float = 0.5,
    ):
        self.client = client
        self.context_manager = context_manager
        self.parser = CommandParser(client, context_manager, confidence_threshold)

    async def process_command(self, user_input: str) -> AIResponse:
        """Parse and validate a command without executing it.

        The returned command carries canonical entity names and is what the
        caller shows for confirmation before posting it back for execution.
        """
        if not user_input or not user_input.strip():
            return AIResponse(
                success=False,
                message="Please enter a command to process.",
                suggestions=EXAMPLE_SUGGESTIONS,
            )

        try:
            self.context_manager.refresh_context()
            response = await self.parser.parse_command(user_input.strip())
            if not response.success or not response.command:
                return response

            validation = self.parser.validate_command(response.command)
            if not validation.valid:
                return AIResponse(
                    success=False,
                    command=response.command,
                    message="Command validation failed",
                    error=", ".join(validation.errors),
                    suggestions=[
                        *validation.errors,
                        *validation.suggestions,
                        "Check if the referenced permissions or roles exist",
                        "Try using the exact names as they appear in the system",
                    ],
                )

            return AIResponse(
                success=True,
                command=self.parser.canonicalize(response.command),
                message=response.message,
                suggestions=response.suggestions,
            )
        except Exception as e:
            logger.exception("Error processing AI command")
            return error_response(e)

    def get_command_suggestions(self) -> List[str]:
        try:
            context = self.context_manager.get_context()
        except Exception as e:
            logger.error("Error getting command suggestions: %s", e)
            return list(FALLBACK_COMMAND_SUGGESTIONS)

        suggestions = [
            "Create a new permission called [permission_name]",
            "Create a new role called [role_name]",
        ]
        if context.permissions and context.roles:
            sample_permission = context.permissions[0].name
            sample_role = context.roles[0].name
            suggestions.append(f"Give the {sample_role} role the {sample_permission} permission")
            suggestions.append(f"Remove {sample_permission} permission from {sample_role} role")
        if context.permissions:
            suggestions.append(f"Delete the {random.choice(context.permissions).name} permission")
        if context.roles:
            suggestions.append(f"Delete the {random.choice(context.roles).name} role")
        return suggestions[:MAX_SUGGESTIONS]

    def get_help_text(self) -> str:
        return HELP_TEXT

    def is_available(self) -> bool:
        return self.client.available

    def get_system_context(self) -> RBACContext:
        try:
            return self.context_manager.get_context()
        except Exception as e:
            logger.error("Error getting system context: %s", e)
            return RBACContext()
