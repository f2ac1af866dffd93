"""Turn orchestrator: one "ask the model for an artifact" operation.

A turn runs up to `max_retries + 1` attempts. Each attempt gets a complete
(possibly continuation-assembled) response, parses it, optionally validates
the parsed code, and on failure appends the model's own output plus a
failure-specific correction to the conversation before trying again.
Continuations repair truncated responses inside an attempt and never count
against the retry budget.
"""

from dataclasses import dataclass

from sketchstudio.errors import MalformedResponse, StructureExhausted, ValidationExhausted
from sketchstudio.models import Completion, Message
from sketchstudio.utils.cancel import checkpoint

CONTINUE_PROMPT = "Continue exactly where you left off. Do not repeat any code."


@dataclass(frozen=True)
class TurnBudget:
    max_retries: int = 2
    max_continuations: int = 3
    max_tokens: int = 16384

    def __post_init__(self):
        if self.max_retries < 0 or self.max_continuations < 0:
            raise ValueError("Retry and continuation budgets must be >= 0.")

    @classmethod
    def from_config(cls, config: dict) -> "TurnBudget":
        return cls(
            max_retries=int(config.get("max_retries", cls.max_retries)),
            max_continuations=int(config.get("max_continuations", cls.max_continuations)),
            max_tokens=int(config.get("max_tokens", cls.max_tokens)),
        )


@dataclass(frozen=True)
class TurnResult:
    artifact: object  # whatever the turn's parser produced
    completion: Completion  # last gateway response of the successful attempt
    text: str  # full assembled response text
    attempts: int
    continuations: int
    conversation: tuple[Message, ...]
    input_tokens: int
    output_tokens: int


@dataclass(frozen=True)
class _Assembled:
    text: str
    completion: Completion
    continuations: int
    input_tokens: int
    output_tokens: int


def complete_with_continuation(gateway, system, messages, budget, cancel=None, log=None) -> _Assembled:
    """Get one full response, asking the model to continue while it is truncated.

    If the continuation budget runs out while still truncated, the partial
    text is returned as-is and left to the parser to accept or reject.
    """
    checkpoint(cancel)
    completion = gateway.complete(system, list(messages), budget.max_tokens, cancel=cancel)
    if log is not None:
        log.tokens(completion.input_tokens, completion.output_tokens)

    text = completion.content
    input_tokens, output_tokens = completion.input_tokens, completion.output_tokens
    continuations = 0

    if completion.truncated and log is not None:
        log.warn("Response truncated, requesting continuation...")

    while completion.truncated and continuations < budget.max_continuations:
        checkpoint(cancel)
        follow_up = list(messages) + [
            Message("assistant", text),
            Message("user", CONTINUE_PROMPT),
        ]
        completion = gateway.complete(system, follow_up, budget.max_tokens, cancel=cancel)
        continuations += 1
        text += completion.content
        input_tokens += completion.input_tokens
        output_tokens += completion.output_tokens
        if log is not None:
            log.tokens(completion.input_tokens, completion.output_tokens)

    if completion.truncated and log is not None:
        log.warn("Max continuations reached, response may be incomplete")
    elif continuations and log is not None:
        log.info("Continuation complete")

    return _Assembled(text, completion, continuations, input_tokens, output_tokens)


def structure_correction(error: MalformedResponse, required: str = "") -> str:
    missing = ", ".join(f"<{tag}>" for tag in error.missing)
    message = f"Parse error: {error}\n\nYour response is missing the required {missing} tag(s)."
    if required:
        message += f" Please fix and include {required}."
    return message


def validation_correction(diagnostics: list[str]) -> str:
    return (
        "Compilation errors:\n"
        + "\n".join(diagnostics)
        + "\n\nPlease fix and provide corrected code."
    )


def run_turn(
    gateway,
    system: str,
    user_message: str,
    parse,
    budget: TurnBudget,
    *,
    validate=None,
    cancel=None,
    log=None,
    phase: str = "turn",
    required_tags: str = "",
) -> TurnResult:
    """Drive one generation turn to a parsed (and validated) artifact.

    Args:
        parse: text -> artifact; raises MalformedResponse naming missing tags.
        validate: optional code -> (ok, diagnostics), applied to `artifact.code`.
        required_tags: human-readable tag list used in structural corrections.

    Raises:
        StructureExhausted, ValidationExhausted: budget spent without success.
        GatewayError, Cancelled: propagated from the gateway immediately.
    """
    conversation = [Message("user", user_message)]
    attempts_allowed = budget.max_retries + 1
    total_in = total_out = 0
    last_text = ""

    for attempt in range(attempts_allowed):
        assembled = complete_with_continuation(gateway, system, conversation, budget, cancel, log)
        total_in += assembled.input_tokens
        total_out += assembled.output_tokens
        last_text = assembled.text
        remaining = attempt < attempts_allowed - 1

        try:
            artifact = parse(assembled.text)
        except MalformedResponse as exc:
            if not remaining:
                raise StructureExhausted(
                    f"could not obtain well-formed output after {attempt + 1} attempt(s): {exc}",
                    phase=phase,
                    attempts=attempt + 1,
                    raw_response=last_text,
                    diagnostics=[str(exc)],
                ) from exc
            if log is not None:
                log.warn(f"Parse error (attempt {attempt + 1}/{attempts_allowed}): {exc}")
            conversation += [
                Message("assistant", assembled.text),
                Message("user", structure_correction(exc, required_tags)),
            ]
            continue

        if validate is not None:
            checkpoint(cancel)
            ok, diagnostics = validate(artifact.code)
            if not ok:
                diagnostics = list(diagnostics)
                if not remaining:
                    raise ValidationExhausted(
                        f"compilation failed after {attempt + 1} attempt(s)",
                        phase=phase,
                        attempts=attempt + 1,
                        raw_response=last_text,
                        diagnostics=diagnostics,
                    )
                if log is not None:
                    log.warn(
                        f"Compile error (attempt {attempt + 1}/{attempts_allowed}): "
                        + "; ".join(diagnostics)
                    )
                conversation += [
                    Message("assistant", assembled.text),
                    Message("user", validation_correction(diagnostics)),
                ]
                continue

        return TurnResult(
            artifact=artifact,
            completion=assembled.completion,
            text=assembled.text,
            attempts=attempt + 1,
            continuations=assembled.continuations,
            conversation=tuple(conversation),
            input_tokens=total_in,
            output_tokens=total_out,
        )

    raise AssertionError("run_turn made no attempts; TurnBudget guarantees at least one")
