"""Conversation dispatcher: one model turn with tool calls for a settled burst."""

import logging
import re
from datetime import UTC, datetime

from pydantic_ai.direct import model_request
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.models import Model, ModelRequestParameters

from src.agents.agent_instance import get_model
from src.agents.prompt import PromptContext, build_system_prompt
from src.agents.tools.registry import execute_tool, get_tool_definitions
from src.core.config import constants, settings
from src.core.errors import classify_agent_error
from src.core.logging import span
from src.domain.action import Action, DispatchResult, DispatchState
from src.domain.user import UserContext
from src.services import user_service


logger = logging.getLogger(__name__)

# Regex pattern to strip special tokens from LLM output
# These tokens can leak from various models (Qwen, DeepSeek, etc.)
_SPECIAL_TOKEN_PATTERN = re.compile(
    r"<\|(?:FunctionCallEnd|endoftext|im_start|im_end|pad|eos|bos|assistant|user|system)\|>",
    re.IGNORECASE,
)


def _sanitize_llm_output(text: str) -> str:
    """Remove leaked special tokens from LLM output.

    Args:
        text: Raw LLM output text

    Returns:
        Sanitized text with special tokens removed
    """
    sanitized = _SPECIAL_TOKEN_PATTERN.sub("", text)
    sanitized = re.sub(r"[ \t]{2,}", " ", sanitized)
    return sanitized.strip()


def _response_text(response: ModelResponse) -> str:
    return "".join(part.content for part in response.parts if isinstance(part, TextPart))


def _tool_calls(response: ModelResponse) -> list[ToolCallPart]:
    return [part for part in response.parts if isinstance(part, ToolCallPart)]


class _Dispatch:
    """Mutable state for one dispatch, kept so failures can report where they happened."""

    def __init__(self) -> None:
        self.state = DispatchState.IDLE
        self.actions: list[Action] = []
        self.last_tool_message: str | None = None

    async def run_tools(self, calls: list[ToolCallPart], user: UserContext) -> ModelRequest:
        self.state = DispatchState.EXECUTING_TOOL
        returns = []
        for call in calls:
            result, action = await execute_tool(name=call.tool_name, raw_args=call.args, user=user)
            if action:
                self.actions.append(action)
            self.last_tool_message = result.message or result.error
            returns.append(
                ToolReturnPart(
                    tool_name=call.tool_name,
                    content=result.to_model_content(),
                    tool_call_id=call.tool_call_id,
                )
            )
        return ModelRequest(parts=returns)


async def process_message(
    *,
    text: str,
    sender_phone: str,
    profile_name: str | None = None,
    model: Model | None = None,
    now: datetime | None = None,
) -> DispatchResult:
    """Run the model over a consolidated message and execute the tools it asks for.

    The model sees a system instruction and the burst as a single user turn.
    Tool results go back as one function-response turn; the text of the next
    response is the reply. Further tool requests are honored up to
    ``MAX_TOOL_ROUNDS`` rounds.

    Any failure while resolving the sender or talking to the model yields the
    fixed apology and no actions; nothing is raised.

    Args:
        text: Newline-joined messages of the burst
        sender_phone: Sender address
        profile_name: WhatsApp profile name, used if a new user is created
        model: Model override (defaults to the configured OpenRouter model)
        now: Current time override

    Returns:
        DispatchResult with the reply and every successful mutating action
    """
    dispatch = _Dispatch()

    with span("hearth_agent.process_message"):
        try:
            user = await user_service.resolve_user(phone=sender_phone, profile_name=profile_name)

            current_time = (now or datetime.now(UTC)).isoformat()
            system_prompt = build_system_prompt(
                PromptContext(
                    user_name=user.display_name,
                    current_time=current_time,
                    is_collaborator=user.is_collaborator,
                )
            )
            messages: list[ModelMessage] = [
                ModelRequest(parts=[SystemPromptPart(content=system_prompt), UserPromptPart(content=text)])
            ]
            parameters = ModelRequestParameters(function_tools=get_tool_definitions(), allow_text_output=True)
            active_model = model or get_model()

            reply = ""
            for round_number in range(settings.max_tool_rounds + 1):
                dispatch.state = (
                    DispatchState.AWAITING_MODEL_RESPONSE if round_number == 0 else DispatchState.AWAITING_FINAL_REPLY
                )
                logger.info("hearth_agent_request", extra={"acting_id": user.acting_id, "round": round_number})
                response = await model_request(active_model, messages, model_request_parameters=parameters)
                messages.append(response)
                reply = _response_text(response)

                calls = _tool_calls(response)
                if not calls:
                    break
                if round_number == settings.max_tool_rounds:
                    logger.warning(
                        "Tool round limit reached, ignoring further tool calls",
                        extra={"acting_id": user.acting_id, "ignored_calls": len(calls)},
                    )
                    break

                messages.append(await dispatch.run_tools(calls, user))

            dispatch.state = DispatchState.DONE
            reply = _sanitize_llm_output(reply) or dispatch.last_tool_message or constants.FALLBACK_REPLY
            logger.info(
                "hearth_agent_done",
                extra={"acting_id": user.acting_id, "actions": [a.kind.value for a in dispatch.actions]},
            )
            return DispatchResult(reply_text=reply, actions=dispatch.actions, state=dispatch.state, user=user)
        except Exception as e:
            error_category = classify_agent_error(e)
            logger.error(
                "Agent execution failed",
                extra={
                    "error": str(e),
                    "error_category": error_category.value,
                    "state": dispatch.state.value,
                    "discarded_actions": len(dispatch.actions),
                },
            )
            return DispatchResult(reply_text=constants.FALLBACK_REPLY, actions=[], state=DispatchState.FAILED)
