from src.jupiter.integrations.cloudflare.turnstile import TurnstileResult, TurnstileVerifier

__all__ = ["TurnstileResult", "TurnstileVerifier"]
