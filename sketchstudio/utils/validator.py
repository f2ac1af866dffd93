"""Input validation: the sketch request and the resolved run config, checked before graph execution."""

PROVIDERS = ("anthropic", "google", "local")
MODES = ("sections", "single")


def validate_input(description: str) -> str:
    """Validate that the description is a non-empty string.

    Returns the stripped input on success.
    Raises ValueError if input is empty or whitespace-only.
    """
    if not isinstance(description, str) or not description.strip():
        raise ValueError("Sketch description must be a non-empty string.")
    return description.strip()


def _int_at_least(config: dict, key: str, minimum: int) -> list[str]:
    value = config.get(key)
    if value is None:
        return []
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        return [f"'{key}' must be an integer >= {minimum} (got {value!r})."]
    return []


def validate_config(config: dict) -> dict:
    """Check the settings a run depends on. Returns `config` unchanged.

    Raises ValueError listing every problem found.
    """
    problems = []
    if config.get("provider", "anthropic") not in PROVIDERS:
        problems.append(f"'provider' must be one of {', '.join(PROVIDERS)}.")
    if config.get("mode", "sections") not in MODES:
        problems.append(f"'mode' must be one of {', '.join(MODES)}.")
    problems += _int_at_least(config, "max_retries", 0)
    problems += _int_at_least(config, "max_continuations", 0)
    problems += _int_at_least(config, "llm_max_retries", 0)
    problems += _int_at_least(config, "max_tokens", 1)
    problems += _int_at_least(config, "expand_workers", 1)
    if problems:
        raise ValueError("Invalid configuration: " + " ".join(problems))
    return config
