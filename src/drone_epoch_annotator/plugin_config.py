# src/drone_epoch_annotator/plugin_config.py
import os
from dataclasses import dataclass, field
from typing import List, Optional

# Default values for optional parameters
DEFAULT_MIN_EPOCH = 0
DEFAULT_MAX_LINE_LENGTH = 0 # 0 means no limit
DEFAULT_SELF_LOGIN = "github-actions[bot]"
DEFAULT_STRATEGY = "batched"
DEFAULT_CLEANUP_POLICIES = "marked,outdated"
DEFAULT_LOG_LEVEL = "INFO"

STRATEGIES = ("batched", "per_commit")


def _split_list(value: str) -> List[str]:
    return [p.strip() for p in value.split(',') if p.strip()]


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        print(f"WARN: [PluginConfig] {name}='{raw}' is not an integer. Defaulting to {default}.")
        return default


@dataclass
class PluginConfig:
    """
    Holds all configuration for the epoch annotator plugin,
    primarily sourced from PLUGIN_ prefixed environment variables.
    """

    # --- SCM Settings ---
    scm_token: Optional[str] = field(
        default_factory=lambda: os.getenv("PLUGIN_SCM_TOKEN") or os.getenv("GITHUB_TOKEN")
    ) # Handled as a secret by CI
    scm_api_url: Optional[str] = field(
        default_factory=lambda: os.getenv("PLUGIN_SCM_API_URL")
    ) # For GitHub Enterprise Server, e.g. https://github.example.com/api/v3

    # --- Annotation Settings ---
    min_epoch: int = field(
        default_factory=lambda: _int_env("PLUGIN_MIN_EPOCH", DEFAULT_MIN_EPOCH)
    )
    max_line_length: int = field(
        default_factory=lambda: _int_env("PLUGIN_MAX_LINE_LENGTH", DEFAULT_MAX_LINE_LENGTH)
    )
    self_login: str = field(
        default_factory=lambda: os.getenv("PLUGIN_SELF_LOGIN", DEFAULT_SELF_LOGIN)
    ) # The account the token posts as; only its comments are ever deleted
    strategy: str = field(
        default_factory=lambda: os.getenv("PLUGIN_STRATEGY", DEFAULT_STRATEGY).strip().lower()
    )
    cleanup_policies: List[str] = field(
        default_factory=lambda: _split_list(os.getenv("PLUGIN_CLEANUP_POLICIES", DEFAULT_CLEANUP_POLICIES))
    )

    # --- Plugin Behavior ---
    include_patterns: List[str] = field(
        default_factory=lambda: _split_list(os.getenv("PLUGIN_INCLUDE_PATTERNS", ""))
    )
    exclude_patterns: List[str] = field(
        default_factory=lambda: _split_list(os.getenv("PLUGIN_EXCLUDE_PATTERNS", ""))
    )
    log_level: str = field(
        default_factory=lambda: os.getenv("PLUGIN_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
    )

    # --- CI Environment Information (to be populated by main.py from CI system variables) ---
    ci_repo_owner: Optional[str] = None
    ci_repo_name: Optional[str] = None
    ci_repo_link: Optional[str] = None
    ci_pr_number: Optional[int] = None
    ci_head_sha: Optional[str] = None
    is_pr_event: bool = False

    def __post_init__(self):
        if not self.scm_token:
            print("WARN: [PluginConfig] PLUGIN_SCM_TOKEN is not set.")

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level not in valid_log_levels:
            print(f"WARN: [PluginConfig] Invalid PLUGIN_LOG_LEVEL '{self.log_level}'. Defaulting to '{DEFAULT_LOG_LEVEL}'.")
            self.log_level = DEFAULT_LOG_LEVEL


def load_plugin_config() -> PluginConfig:
    """
    Factory function to create and return a PluginConfig instance.
    """
    return PluginConfig()
