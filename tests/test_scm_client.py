import json
import unittest
from unittest.mock import patch

import requests

from drone_epoch_annotator.exceptions import TransportFailureError, UnexpectedResponseShapeError
from drone_epoch_annotator.models import PendingAnnotation, RequestContext
from drone_epoch_annotator.scm_client import DIFF_MEDIA_TYPE, GitHubReviewClient

API = "https://api.github.com"
CTX = RequestContext(owner="acme", repo="widgets", pr_number=7, head_sha="f" * 40)
PULL = f"{API}/repos/acme/widgets/pulls/7"


def _response(status=200, json_body=None, text="", headers=None, url=PULL):
    response = requests.Response()
    response.status_code = status
    response.url = url
    response.encoding = "utf-8"
    if json_body is not None:
        response.headers["Content-Type"] = "application/json; charset=utf-8"
        response._content = json.dumps(json_body).encode("utf-8")
    else:
        response.headers["Content-Type"] = "text/plain; charset=utf-8"
        response._content = text.encode("utf-8")
    response.headers.update(headers or {})
    return response


def _thread_node(thread_id, database_id, login="github-actions[bot]", outdated=False, more_comments=False):
    return {"node": {
        "id": thread_id,
        "isOutdated": outdated,
        "path": "a.py",
        "line": None if outdated else 3,
        "comments": {
            "pageInfo": {"hasNextPage": more_comments},
            "nodes": [{"databaseId": database_id, "body": "x", "author": {"login": login}}],
        },
    }}


def _threads_page(edges, has_next=False, cursor=None):
    return {"data": {"repository": {"pullRequest": {"reviewThreads": {
        "pageInfo": {"hasNextPage": has_next, "endCursor": cursor},
        "edges": edges,
    }}}}}


class TestGitHubReviewClient(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.client = GitHubReviewClient("secret-token")
        patcher = patch.object(self.client.session, "request")
        self.request = patcher.start()
        self.addCleanup(patcher.stop)

    def _sent(self, index=0):
        call = self.request.call_args_list[index]
        method, url = call.args
        return method, url, call.kwargs

    async def test_list_reviews_follows_next_links(self):
        next_url = f"{PULL}/reviews?per_page=100&page=2"
        self.request.side_effect = [
            _response(json_body=[{"id": 1, "user": {"login": "github-actions[bot]"}, "body": "first"}],
                      headers={"Link": f'<{next_url}>; rel="next"'}),
            _response(json_body=[{"id": 2, "user": None, "body": None}]),
        ]

        reviews = await self.client.list_reviews(CTX)

        self.assertEqual([(r.review_id, r.author_login, r.body) for r in reviews],
                         [(1, "github-actions[bot]", "first"), (2, None, "")])
        self.assertEqual(self.request.call_count, 2)
        _, first_url, first_kwargs = self._sent(0)
        _, second_url, second_kwargs = self._sent(1)
        self.assertEqual(first_url, f"{PULL}/reviews")
        self.assertEqual(first_kwargs["params"], {"per_page": 100})
        self.assertEqual(second_url, next_url)
        self.assertIsNone(second_kwargs["params"])
        self.assertEqual(self.client.session.headers["Authorization"], "token secret-token")

    async def test_list_review_comments_maps_records(self):
        self.request.return_value = _response(json_body=[{
            "id": 11, "pull_request_review_id": 5, "user": {"login": "octocat"},
            "path": "a.py", "line": 4, "body": "hello",
        }])

        comments = await self.client.list_review_comments(CTX)

        self.assertEqual(comments[0].comment_id, 11)
        self.assertEqual(comments[0].review_id, 5)
        self.assertEqual(comments[0].author_login, "octocat")
        self.assertEqual((comments[0].path, comments[0].line), ("a.py", 4))

    async def test_list_endpoint_must_return_a_list(self):
        self.request.return_value = _response(json_body={"message": "odd"})
        with self.assertRaises(UnexpectedResponseShapeError):
            await self.client.list_commits(CTX)

    async def test_get_pull_request_diff_requests_diff_media_type(self):
        self.request.return_value = _response(text="diff --git a/x b/x\n")

        diff_text = await self.client.get_pull_request_diff(CTX)

        self.assertEqual(diff_text, "diff --git a/x b/x\n")
        method, url, kwargs = self._sent()
        self.assertEqual((method, url), ("GET", PULL))
        self.assertEqual(kwargs["headers"], {"Accept": DIFF_MEDIA_TYPE})

    async def test_get_pull_request_diff_rejects_json(self):
        self.request.return_value = _response(json_body={"number": 7})
        with self.assertRaises(UnexpectedResponseShapeError):
            await self.client.get_pull_request_diff(CTX)

    async def test_get_commit_files(self):
        sha = "a" * 40
        self.request.return_value = _response(json_body={
            "sha": sha, "files": [{"filename": "a.py", "status": "modified", "patch": "@@ -1 +1 @@\n-a\n+b"}],
        })

        files = await self.client.get_commit_files(CTX, sha)

        self.assertEqual(files[0]["filename"], "a.py")
        self.assertEqual(self._sent()[1], f"{API}/repos/acme/widgets/commits/{sha}")

    async def test_list_review_threads_paginates_with_cursor(self):
        self.request.side_effect = [
            _response(json_body=_threads_page([_thread_node("T1", 101)], has_next=True, cursor="CUR1")),
            _response(json_body=_threads_page([
                _thread_node("T2", 202, login="octocat", outdated=True, more_comments=True),
            ])),
        ]

        threads = await self.client.list_review_threads(CTX)

        self.assertEqual([t.thread_id for t in threads], ["T1", "T2"])
        self.assertFalse(threads[0].is_outdated)
        self.assertEqual(threads[0].line, 3)
        self.assertTrue(threads[1].is_outdated)
        self.assertEqual(threads[1].comments[0].comment_id, 202)
        self.assertFalse(threads[0].has_more_comments)
        self.assertTrue(threads[1].has_more_comments)
        self.assertEqual(threads[1].comments[0].author_login, "octocat")

        method, url, first = self._sent(0)
        second = self._sent(1)[2]
        self.assertEqual((method, url), ("POST", f"{API}/graphql"))
        self.assertIsNone(first["json"]["variables"]["cursor"])
        self.assertEqual(second["json"]["variables"]["cursor"], "CUR1")
        self.assertEqual(second["json"]["variables"]["number"], 7)

    async def test_graphql_errors_raise(self):
        self.request.return_value = _response(json_body={"errors": [{"message": "Bad credentials"}]})
        with self.assertRaises(TransportFailureError) as ctx:
            await self.client.list_review_threads(CTX)
        self.assertIn("Bad credentials", str(ctx.exception))

    async def test_error_status_raises_transport_failure(self):
        self.request.return_value = _response(status=404, json_body={"message": "Not Found"})
        with self.assertRaises(TransportFailureError) as ctx:
            await self.client.delete_review_comment(CTX, 55)
        self.assertEqual(ctx.exception.status_code, 404)

    async def test_connection_error_raises_transport_failure(self):
        self.request.side_effect = requests.exceptions.ConnectionError("connection refused")
        with self.assertRaises(TransportFailureError) as ctx:
            await self.client.list_reviews(CTX)
        self.assertIsNone(ctx.exception.status_code)

    async def test_delete_review_comment(self):
        self.request.return_value = _response(status=204)

        await self.client.delete_review_comment(CTX, 55)

        method, url, _ = self._sent()
        self.assertEqual((method, url), ("DELETE", f"{API}/repos/acme/widgets/pulls/comments/55"))

    async def test_create_review_sends_batched_comments(self):
        self.request.return_value = _response(json_body={"id": 9})

        await self.client.create_review(CTX, "marker body", [PendingAnnotation("a.py", 4, "dated")])

        method, url, kwargs = self._sent()
        self.assertEqual((method, url), ("POST", f"{PULL}/reviews"))
        payload = kwargs["json"]
        self.assertEqual(payload["event"], "COMMENT")
        self.assertEqual(payload["body"], "marker body")
        self.assertEqual(payload["commit_id"], "f" * 40)
        self.assertEqual(payload["comments"], [{"path": "a.py", "line": 4, "side": "RIGHT", "body": "dated"}])

    async def test_create_review_comment(self):
        self.request.return_value = _response(status=201, json_body={"id": 3})

        await self.client.create_review_comment(CTX, "a.py", 4, "RIGHT", "b" * 40, "dated")

        self.assertEqual(self._sent()[2]["json"], {"body": "dated", "path": "a.py", "line": 4, "side": "RIGHT",
                                                   "commit_id": "b" * 40})


class TestGraphqlUrl(unittest.TestCase):
    def test_github_com(self):
        self.assertEqual(GitHubReviewClient("t").graphql_url, "https://api.github.com/graphql")

    def test_enterprise_server(self):
        client = GitHubReviewClient("t", api_url="https://github.example.com/api/v3/")
        self.assertEqual(client.api_base_url, "https://github.example.com/api/v3")
        self.assertEqual(client.graphql_url, "https://github.example.com/api/graphql")


if __name__ == '__main__':
    unittest.main()
