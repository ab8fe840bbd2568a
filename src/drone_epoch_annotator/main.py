# src/drone_epoch_annotator/main.py
import os
import sys
import asyncio
import logging
from typing import List
from urllib.parse import urlparse
from dotenv import load_dotenv # For local development using .env file

from .plugin_config import load_plugin_config, PluginConfig, STRATEGIES
from .annotator import AnnotatorOptions, annotate_pull_request
from .exceptions import AnnotatorError, ConfigurationError
from .models import RequestContext
from .reconciler import ReconcilePolicy
from .scm_client import GitHubReviewClient

# Global logger for the module
logger = logging.getLogger("drone_epoch_annotator") # Use a named logger

def setup_logging(log_level_str: str):
    """Configures basic logging for the plugin."""
    numeric_level = getattr(logging, log_level_str.upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
        logger.warning(f"Invalid log level '{log_level_str}'. Defaulting to INFO.")

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    # requests/urllib3 log every connection at DEBUG
    logging.getLogger("urllib3").setLevel(max(numeric_level, logging.INFO))


def validate_config(config: PluginConfig) -> List[str]:
    """Returns a list of problems with the configuration; empty when it is usable."""
    problems = []
    if not config.scm_token:
        problems.append("PLUGIN_SCM_TOKEN is not configured.")
    if not config.ci_repo_owner or not config.ci_repo_name:
        problems.append("Could not determine repository owner and name.")
    if not config.ci_pr_number:
        problems.append("Could not determine the pull request number.")
    if config.strategy not in STRATEGIES:
        problems.append(f"Invalid PLUGIN_STRATEGY '{config.strategy}'. Valid strategies: {', '.join(STRATEGIES)}")
    try:
        ReconcilePolicy.parse_list(config.cleanup_policies)
    except ConfigurationError as e:
        problems.append(str(e))
    return problems


def parse_repo_link(repo_link: str):
    """Splits a clone or web URL into (owner, name); returns (None, None) when it cannot."""
    parsed_url = urlparse(repo_link)
    path_segments = [segment for segment in parsed_url.path.split('/') if segment]
    if path_segments and path_segments[-1].endswith(".git"):
        path_segments[-1] = path_segments[-1][:-4]
    if len(path_segments) < 2:
        return None, None
    # last part is repo, everything before is owner/namespace
    return "/".join(path_segments[:-1]), path_segments[-1]


def populate_ci_environment_info(config: PluginConfig):
    """
    Populates the PluginConfig object with information derived from Drone CI environment variables.
    """
    logger.info("Populating CI environment information into config...")

    pr_number_str = os.getenv("DRONE_PULL_REQUEST")
    if pr_number_str:
        try:
            config.ci_pr_number = int(pr_number_str)
            config.is_pr_event = True
        except ValueError:
            logger.error(f"Invalid DRONE_PULL_REQUEST value: {pr_number_str}. Not a number.")
            config.is_pr_event = False
    else:
        config.is_pr_event = False

    if not config.is_pr_event:
        logger.info("Not a PR event (DRONE_PULL_REQUEST not set or invalid). Skipping annotation.")
        return

    config.ci_head_sha = os.getenv("DRONE_COMMIT_SHA") or os.getenv("DRONE_COMMIT") or os.getenv("DRONE_COMMIT_AFTER")

    config.ci_repo_owner = os.getenv("DRONE_REPO_OWNER")
    config.ci_repo_name = os.getenv("DRONE_REPO_NAME")
    if not config.ci_repo_owner or not config.ci_repo_name:
        config.ci_repo_link = os.getenv("DRONE_REPO_LINK")
        if config.ci_repo_link:
            config.ci_repo_owner, config.ci_repo_name = parse_repo_link(config.ci_repo_link)
            logger.info(f"Parsed Repo: Owner='{config.ci_repo_owner}', Name='{config.ci_repo_name}' from link.")

    logger.info(f"PR #{config.ci_pr_number} in {config.ci_repo_owner}/{config.ci_repo_name}, head {config.ci_head_sha}")


async def async_main() -> int:
    """
    Asynchronous main function to orchestrate the plugin.
    """
    config = load_plugin_config()
    setup_logging(config.log_level) # Configure logging early

    logger.info("Starting epoch annotator plugin...")
    logger.info(f"Plugin Version: {getattr(__import__('drone_epoch_annotator'), '__version__', 'N/A')}")

    populate_ci_environment_info(config)
    if not config.is_pr_event:
        return 0 # Nothing to annotate outside pull requests

    problems = validate_config(config)
    if problems:
        for problem in problems:
            logger.critical(problem)
        return 1

    client = GitHubReviewClient(config.scm_token, api_url=config.scm_api_url)
    ctx = RequestContext(
        owner=config.ci_repo_owner,
        repo=config.ci_repo_name,
        pr_number=config.ci_pr_number,
        head_sha=config.ci_head_sha,
    )

    try:
        await annotate_pull_request(client, ctx, AnnotatorOptions.from_config(config))
    except AnnotatorError as e:
        logger.error(f"Annotation of PR #{ctx.pr_number} failed: {e}")
        return 1
    except Exception as e:
        logger.critical(f"Unhandled exception in plugin execution: {e}", exc_info=True)
        return 1
    logger.info("Plugin execution finished.")
    return 0


def main_cli():
    """
    CLI entry point. Loads .env for local dev.
    """
    # In a real CI environment, variables are injected by the system.
    if os.path.exists(".env"):
        logger.info("Found .env file, loading environment variables for local development.")
        load_dotenv(override=True)

    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Plugin execution interrupted by user (KeyboardInterrupt).")
        return 130 # Standard exit code for Ctrl+C

if __name__ == "__main__":
    sys.exit(main_cli())
