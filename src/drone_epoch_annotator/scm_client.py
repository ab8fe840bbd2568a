# src/drone_epoch_annotator/scm_client.py
import asyncio
import json
import logging
import requests # Using requests library for HTTP calls
from typing import Any, AsyncIterator, Dict, List, Optional

from .exceptions import TransportFailureError, UnexpectedResponseShapeError
from .models import (
    PendingAnnotation, RequestContext, ReviewCommentRecord, ReviewRecord, ReviewThread, ThreadComment,
)

logger = logging.getLogger(__name__)

GITHUB_API_BASE_URL = "https://api.github.com"
DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"
PAGE_SIZE = 100
REQUEST_TIMEOUT = 30

REVIEW_THREADS_QUERY = """
query($owner: String!, $repo: String!, $number: Int!, $cursor: String) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $number) {
      reviewThreads(first: 100, after: $cursor) {
        pageInfo { hasNextPage endCursor }
        edges {
          node {
            id
            isOutdated
            path
            line
            comments(first: 100) {
              pageInfo { hasNextPage }
              nodes {
                databaseId
                body
                author { login }
              }
            }
          }
        }
      }
    }
  }
}
"""


def _login(user: Optional[Dict[str, Any]]) -> Optional[str]:
    return user.get("login") if isinstance(user, dict) else None


class GitHubReviewClient:
    """
    Talks to the GitHub REST v3 and GraphQL v4 APIs on behalf of the annotator.

    Every public method is a coroutine; the blocking ``requests`` call runs in
    a worker thread so each page fetch is a suspension point. Failures are
    raised as TransportFailureError and never retried here.
    """
    def __init__(self, token: str, api_url: Optional[str] = None, graphql_url: Optional[str] = None):
        self.api_base_url = (api_url or GITHUB_API_BASE_URL).rstrip("/")
        if graphql_url:
            self.graphql_url = graphql_url
        elif self.api_base_url.endswith("/api/v3"): # GitHub Enterprise Server
            self.graphql_url = self.api_base_url[:-len("/v3")] + "/graphql"
        else:
            self.graphql_url = f"{self.api_base_url}/graphql"
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/vnd.github.v3+json",
            "Authorization": f"token {token}",
            "X-GitHub-Api-Version": "2022-11-28",
        })
        logger.info(f"SCM Client initialized for base URL: {self.api_base_url}")

    def _request(self, method: str, url: str, params: Optional[Dict] = None, json_data: Optional[Dict] = None,
                 custom_headers: Optional[Dict] = None) -> requests.Response:
        """Helper method to make HTTP requests. Raises on anything but a 2xx answer."""
        if not url.startswith("http"):
            url = f"{self.api_base_url}{url}"
        try:
            logger.debug(f"Making SCM API {method} request to {url} with params {params}")
            response = self.session.request(method, url, params=params, json=json_data,
                                            headers=custom_headers, timeout=REQUEST_TIMEOUT)
        except requests.exceptions.RequestException as e:
            logger.error(f"SCM API request to {url} encountered an exception: {e}")
            raise TransportFailureError(f"{method} {url} failed: {e}") from e

        if not response.ok:
            logger.error(f"SCM API request to {url} failed with status {response.status_code}: {response.text[:500]}")
            raise TransportFailureError(
                f"{method} {url} returned HTTP {response.status_code}", status_code=response.status_code
            )
        return response

    async def _call(self, method: str, url: str, **kwargs) -> requests.Response:
        return await asyncio.to_thread(self._request, method, url, **kwargs)

    @staticmethod
    def _json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise UnexpectedResponseShapeError(f"Expected JSON from {response.url}: {e}") from e

    async def iter_paginated(self, endpoint: str, params: Optional[Dict] = None) -> AsyncIterator[Dict[str, Any]]:
        """Yields the records of a REST list endpoint, one page at a time, following ``Link: rel="next"``."""
        url: Optional[str] = endpoint
        page_params: Optional[Dict] = {"per_page": PAGE_SIZE, **(params or {})}
        while url:
            response = await self._call("GET", url, params=page_params)
            data = self._json(response)
            if not isinstance(data, list):
                raise UnexpectedResponseShapeError(f"Expected a list from {endpoint}, got {type(data).__name__}")
            for record in data:
                yield record
            url = response.links.get("next", {}).get("url")
            page_params = None # the next link already carries the query string

    async def list_paginated(self, endpoint: str, params: Optional[Dict] = None) -> List[Dict[str, Any]]:
        return [record async for record in self.iter_paginated(endpoint, params)]

    def _pull_endpoint(self, ctx: RequestContext, suffix: str = "") -> str:
        return f"/repos/{ctx.owner}/{ctx.repo}/pulls/{ctx.pr_number}{suffix}"

    async def list_commits(self, ctx: RequestContext) -> List[Dict[str, Any]]:
        commits = await self.list_paginated(self._pull_endpoint(ctx, "/commits"))
        logger.info(f"Fetched {len(commits)} commit(s) for PR #{ctx.pr_number}.")
        return commits

    async def list_reviews(self, ctx: RequestContext) -> List[ReviewRecord]:
        reviews = await self.list_paginated(self._pull_endpoint(ctx, "/reviews"))
        return [
            ReviewRecord(review_id=r["id"], author_login=_login(r.get("user")), body=r.get("body") or "")
            for r in reviews
        ]

    async def list_review_comments(self, ctx: RequestContext) -> List[ReviewCommentRecord]:
        comments = await self.list_paginated(self._pull_endpoint(ctx, "/comments"))
        return [
            ReviewCommentRecord(
                comment_id=c["id"],
                review_id=c.get("pull_request_review_id"),
                author_login=_login(c.get("user")),
                path=c.get("path"),
                line=c.get("line"),
                body=c.get("body") or "",
            )
            for c in comments
        ]

    async def graphql(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._call("POST", self.graphql_url, json_data={"query": query, "variables": variables})
        result = self._json(response)
        if not isinstance(result, dict):
            raise UnexpectedResponseShapeError("GraphQL response is not an object")
        errors = result.get("errors")
        if errors:
            first = errors[0].get("message", errors) if isinstance(errors[0], dict) else errors
            raise TransportFailureError(f"GraphQL error: {first}")
        return result.get("data") or {}

    async def list_review_threads(self, ctx: RequestContext) -> List[ReviewThread]:
        threads: List[ReviewThread] = []
        cursor: Optional[str] = None
        while True:
            data = await self.graphql(REVIEW_THREADS_QUERY, {
                "owner": ctx.owner, "repo": ctx.repo, "number": ctx.pr_number, "cursor": cursor,
            })
            try:
                connection = data["repository"]["pullRequest"]["reviewThreads"]
            except (KeyError, TypeError) as e:
                raise UnexpectedResponseShapeError(f"reviewThreads missing from GraphQL response: {e}") from e

            for edge in connection.get("edges") or []:
                node = edge.get("node") or {}
                comment_page = node.get("comments") or {}
                threads.append(ReviewThread(
                    thread_id=node["id"],
                    is_outdated=bool(node.get("isOutdated")),
                    path=node.get("path"),
                    line=node.get("line"),
                    has_more_comments=bool((comment_page.get("pageInfo") or {}).get("hasNextPage")),
                    comments=[
                        ThreadComment(
                            comment_id=c["databaseId"],
                            author_login=_login(c.get("author")),
                            body=c.get("body") or "",
                        )
                        for c in comment_page.get("nodes") or []
                    ],
                ))

            page_info = connection.get("pageInfo") or {}
            if page_info.get("hasNextPage") and page_info.get("endCursor"):
                cursor = page_info["endCursor"]
            else:
                break

        logger.info(f"Fetched {len(threads)} review thread(s) for PR #{ctx.pr_number}.")
        return threads

    async def get_commit_files(self, ctx: RequestContext, sha: str) -> List[Dict[str, Any]]:
        """Fetches a commit and returns its ``files`` list (filename, status, patch, previous_filename)."""
        response = await self._call("GET", f"/repos/{ctx.owner}/{ctx.repo}/commits/{sha}")
        data = self._json(response)
        if not isinstance(data, dict):
            raise UnexpectedResponseShapeError(f"Expected an object for commit {sha}")
        return data.get("files") or []

    async def get_pull_request_diff(self, ctx: RequestContext) -> str:
        logger.info(f"Fetching full PR diff from SCM for PR #{ctx.pr_number}")
        response = await self._call("GET", self._pull_endpoint(ctx), custom_headers={"Accept": DIFF_MEDIA_TYPE})
        content_type = response.headers.get("Content-Type", "")
        if "json" in content_type:
            raise UnexpectedResponseShapeError(f"Expected diff text for PR #{ctx.pr_number}, got {content_type}")
        diff_text = response.text
        logger.info(f"Successfully fetched PR diff (length: {len(diff_text)}).")
        return diff_text

    async def create_review_comment(self, ctx: RequestContext, path: str, line: int, side: str,
                                    commit_sha: str, body: str) -> Dict[str, Any]:
        payload = {"body": body, "path": path, "line": line, "side": side, "commit_id": commit_sha}
        logger.debug(f"Posting review comment to {path} - {side} - {line}")
        response = await self._call("POST", self._pull_endpoint(ctx, "/comments"), json_data=payload)
        return self._json(response)

    async def create_review(self, ctx: RequestContext, body: str, comments: List[PendingAnnotation],
                            event: str = "COMMENT") -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "event": event,
            "body": body,
            "comments": [comment.to_review_payload() for comment in comments],
        }
        if ctx.head_sha:
            payload["commit_id"] = ctx.head_sha

        logger.info(f"Posting review with {len(comments)} comment(s) to PR #{ctx.pr_number}.")
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Review payload: {json.dumps(payload, indent=2)}")
        response = await self._call("POST", self._pull_endpoint(ctx, "/reviews"), json_data=payload)
        return self._json(response)

    async def delete_review_comment(self, ctx: RequestContext, comment_id: int) -> None:
        logger.debug(f"Deleting review comment {comment_id}")
        await self._call("DELETE", f"/repos/{ctx.owner}/{ctx.repo}/pulls/comments/{comment_id}")
