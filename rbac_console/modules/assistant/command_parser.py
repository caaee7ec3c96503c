"""
Turns free text into an ``AICommand`` via Gemini and checks it against the
current RBAC state.

The model is asked for a single JSON object. Anything that does not parse into
that shape becomes a failed ``AIResponse`` with rephrasing hints; nothing in
this module raises to the caller.
"""

import difflib
import json
import logging
import re
from typing import Any, Dict, List, Optional

from rbac_console.core.validation import validate_description, validate_name
from rbac_console.modules.assistant.context_manager import RBACContextManager
from rbac_console.modules.assistant.gemini_client import GeminiClient
from rbac_console.modules.assistant.schemas import (
    AICommand,
    AIResponse,
    CommandType,
    CommandValidation,
)

logger = logging.getLogger(__name__)

JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")

PARSE_FAILURE_SUGGESTIONS = [
    "Try using simpler language",
    "Be more specific about what you want to do",
    'Use examples like: "Create a new permission called read_users"',
    'Or: "Give the admin role the read_users permission"',
]

MODEL_FAILURE_SUGGESTIONS = [
    "Try rephrasing your command",
    "Check if you're using correct permission or role names",
    "Use simpler language",
]

PROMPT_TEMPLATE = """You are an RBAC (Role-Based Access Control) configuration assistant. Your job is to interpret natural language commands and convert them into structured actions.

{context}

SUPPORTED COMMANDS:
1. Create permission: "Create a new permission called [name]" or "Add permission [name] with description [desc]"
2. Create role: "Create a new role called [name]" or "Add role [name]"
3. Assign permission: "Give role [role_name] the permission [permission_name]" or "Assign [permission_name] to [role_name]"
4. Remove permission from role: "Remove permission [permission_name] from role [role_name]"
5. Delete permission: "Delete permission [permission_name]"
6. Delete role: "Delete role [role_name]"

USER COMMAND: {user_input}

Please analyze the command and respond with a JSON object in this exact format:
{{
  "type": "create_permission|create_role|assign_permission|remove_permission|delete_permission|delete_role|unknown",
  "parameters": {{
    // Include relevant parameters based on command type
    // For create_permission: {{"name": "permission_name", "description": "optional_description"}}
    // For create_role: {{"name": "role_name"}}
    // For assign_permission: {{"role_name": "role_name", "permission_name": "permission_name"}}
    // For remove_permission: {{"role_name": "role_name", "permission_name": "permission_name"}}
    // For delete_permission: {{"name": "permission_name"}}
    // For delete_role: {{"name": "role_name"}}
  }},
  "confidence": 0.0-1.0,
  "message": "Human-readable explanation of what will be done",
  "validation_errors": ["array of any validation issues found"],
  "suggestions": ["array of helpful suggestions if command is unclear"]
}}

VALIDATION RULES:
- Check if referenced permissions/roles exist in the current system
- Prevent duplicate creation of permissions/roles
- Ensure role-permission associations don't already exist when assigning
- Ensure associations exist when removing
- Provide helpful error messages for validation failures

Respond ONLY with the JSON object, no additional text."""


class ResponseFormatError(ValueError):
    pass


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item]


class CommandParser:
    def __init__(
        self,
        client: GeminiClient,
        context_manager: RBACContextManager,
        confidence_threshold: float = 0.5,
    ):
        self.client = client
        self.context_manager = context_manager
        self.confidence_threshold = confidence_threshold

    async def parse_command(self, user_input: str) -> AIResponse:
        try:
            prompt = self.build_prompt(user_input, self.context_manager.get_context_string())
            text = await self.client.generate(prompt)
        except Exception as e:
            logger.error("Error parsing command: %s", e)
            return AIResponse(
                success=False,
                message="Failed to process your command. Please try again.",
                error=str(e) or e.__class__.__name__,
                suggestions=MODEL_FAILURE_SUGGESTIONS,
            )
        return self.parse_ai_response(text)

    def build_prompt(self, user_input: str, context_string: str) -> str:
        # json.dumps quotes the input so embedded quotes cannot end the field early
        return PROMPT_TEMPLATE.format(
            context=context_string,
            user_input=json.dumps(user_input, ensure_ascii=False),
        )

    def _extract_payload(self, text: str) -> Dict[str, Any]:
        match = JSON_OBJECT_PATTERN.search(text or "")
        if not match:
            raise ResponseFormatError("No JSON found in AI response")
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ResponseFormatError(f"Malformed JSON in AI response: {e}") from e

        if not isinstance(parsed, dict):
            raise ResponseFormatError("Invalid AI response structure")
        confidence = parsed.get("confidence")
        if (
            not parsed.get("type")
            or not isinstance(parsed.get("parameters"), dict)
            or isinstance(confidence, bool)
            or not isinstance(confidence, (int, float))
        ):
            raise ResponseFormatError("Invalid AI response structure")
        return parsed

    def parse_ai_response(self, text: str) -> AIResponse:
        try:
            parsed = self._extract_payload(text)
        except ResponseFormatError as e:
            logger.warning("Error parsing AI response: %s", e)
            return AIResponse(
                success=False,
                message="I couldn't understand your command. Please try rephrasing it.",
                error="Failed to parse AI response",
                suggestions=PARSE_FAILURE_SUGGESTIONS,
            )

        command = AICommand(
            type=parsed["type"],
            parameters=parsed["parameters"],
            confidence=max(0.0, min(1.0, float(parsed["confidence"]))),
        )
        validation_errors = _string_list(parsed.get("validation_errors"))
        suggestions = validation_errors or _string_list(parsed.get("suggestions")) or None

        return AIResponse(
            success=command.type != CommandType.unknown and command.confidence > self.confidence_threshold,
            command=command,
            message=parsed.get("message") or f"Interpreted as: {command.type.value}",
            suggestions=suggestions,
        )

    def _closest(self, name: str, candidates: List[str]) -> Optional[str]:
        by_lower = {c.lower(): c for c in candidates}
        matches = difflib.get_close_matches(name.lower(), list(by_lower), n=1, cutoff=0.75)
        return by_lower[matches[0]] if matches else None

    def _missing(self, kind: str, name: str, candidates: List[str], result: CommandValidation) -> None:
        result.errors.append(f'{kind} "{name}" does not exist')
        closest = self._closest(name, candidates)
        if closest:
            result.suggestions.append(f'Did you mean {kind.lower()} "{closest}"?')

    def _validate_pair(self, params: Dict[str, str], must_exist: bool, result: CommandValidation) -> None:
        role_name = params.get("role_name")
        permission_name = params.get("permission_name")
        if not role_name or not permission_name:
            result.errors.append("Both role name and permission name are required")
            return

        context = self.context_manager.get_context()
        role = self.context_manager.find_role_by_name(role_name)
        permission = self.context_manager.find_permission_by_name(permission_name)
        if not role:
            self._missing("Role", role_name, [r.name for r in context.roles], result)
        if not permission:
            self._missing("Permission", permission_name, [p.name for p in context.permissions], result)
        if not role or not permission:
            return

        assigned = self.context_manager.has_role_permission(role.id, permission.id)
        if must_exist and not assigned:
            result.errors.append(f'Role "{role_name}" does not have permission "{permission_name}"')
        elif not must_exist and assigned:
            result.errors.append(f'Role "{role_name}" already has permission "{permission_name}"')

    @staticmethod
    def _check_new_name(
        name: str, params: Dict[str, str], result: CommandValidation, with_description: bool = False
    ) -> bool:
        # Same rules the executor applies, so a passing preview can be confirmed
        try:
            validate_name(name)
            if with_description:
                validate_description(params.get("description"))
        except ValueError as e:
            result.errors.append(str(e))
            return False
        return True

    def validate_command(self, command: AICommand) -> CommandValidation:
        """Check a parsed command against the current RBAC state.

        Lookups are case-insensitive. Unknown names get a "Did you mean" hint
        when a stored name is close enough.
        """
        result = CommandValidation(valid=True)
        params = command.parameters
        context = self.context_manager.get_context()
        name = params.get("name")

        if command.type == CommandType.create_permission:
            if not name:
                result.errors.append("Permission name is required")
            elif self._check_new_name(name, params, result, with_description=True):
                if self.context_manager.find_permission_by_name(name):
                    result.errors.append(f'Permission "{name}" already exists')
        elif command.type == CommandType.create_role:
            if not name:
                result.errors.append("Role name is required")
            elif self._check_new_name(name, params, result):
                if self.context_manager.find_role_by_name(name):
                    result.errors.append(f'Role "{name}" already exists')
        elif command.type == CommandType.assign_permission:
            self._validate_pair(params, must_exist=False, result=result)
        elif command.type == CommandType.remove_permission:
            self._validate_pair(params, must_exist=True, result=result)
        elif command.type == CommandType.delete_permission:
            if not name:
                result.errors.append("Permission name is required")
            elif not self.context_manager.find_permission_by_name(name):
                self._missing("Permission", name, [p.name for p in context.permissions], result)
        elif command.type == CommandType.delete_role:
            if not name:
                result.errors.append("Role name is required")
            elif not self.context_manager.find_role_by_name(name):
                self._missing("Role", name, [r.name for r in context.roles], result)
        else:
            result.errors.append("Unknown command type")

        result.valid = not result.errors
        return result

    def canonicalize(self, command: AICommand) -> AICommand:
        """Rewrite referenced names to the stored spelling so execution hits the validated rows."""
        params = dict(command.parameters)

        if command.type in (CommandType.assign_permission, CommandType.remove_permission):
            role = self.context_manager.find_role_by_name(params.get("role_name", ""))
            permission = self.context_manager.find_permission_by_name(params.get("permission_name", ""))
            if role:
                params["role_name"] = role.name
            if permission:
                params["permission_name"] = permission.name
        elif command.type == CommandType.delete_permission:
            permission = self.context_manager.find_permission_by_name(params.get("name", ""))
            if permission:
                params["name"] = permission.name
        elif command.type == CommandType.delete_role:
            role = self.context_manager.find_role_by_name(params.get("name", ""))
            if role:
                params["name"] = role.name

        return command.model_copy(update={"parameters": params})
