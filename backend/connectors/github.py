"""
GitHub connector – pull request, review, issue comment and content operations.

Authentication is as a GitHub App: an RS256 app JWT is exchanged for an
installation token of the repository being touched, so the assistant can act
on any repository the app is installed on.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx
from jose import jwt

logger = logging.getLogger(__name__)

GITHUB_API_BASE: str = "https://api.github.com"
GITHUB_API_VERSION: str = "2022-11-28"


def _login(user: Optional[dict[str, Any]]) -> Optional[str]:
    return (user or {}).get("login")


class GitHubConnector:
    """GitHub REST client authenticated as a GitHub App installation."""

    def __init__(self, app_id: str, private_key: str) -> None:
        self.app_id = app_id
        self.private_key = private_key
        # Cache: "owner/repo" → (installation token, expiry epoch seconds)
        self._token_cache: dict[str, tuple[str, float]] = {}

    # ── Auth ────────────────────────────────────────────────────────────

    def _app_jwt(self) -> str:
        now = int(time.time())
        claims = {
            "iat": now - 60,  # allow for clock drift
            "exp": now + 9 * 60,
            "iss": self.app_id,
        }
        return jwt.encode(claims, self.private_key, algorithm="RS256")

    async def _installation_token(self, owner: str, repo: str) -> str:
        cache_key = f"{owner}/{repo}".lower()
        cached = self._token_cache.get(cache_key)
        if cached and cached[1] > time.time() + 60:
            return cached[0]

        headers: dict[str, str] = {
            "Authorization": f"Bearer {self._app_jwt()}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        async with httpx.AsyncClient(timeout=30.0) as client:
            resp: httpx.Response = await client.get(
                f"{GITHUB_API_BASE}/repos/{owner}/{repo}/installation",
                headers=headers,
            )
            resp.raise_for_status()
            installation_id: int = resp.json()["id"]

            resp = await client.post(
                f"{GITHUB_API_BASE}/app/installations/{installation_id}/access_tokens",
                headers=headers,
            )
            resp.raise_for_status()
            token: str = resp.json()["token"]

        logger.info(
            "[github] Issued installation token for %s (installation %s)",
            cache_key,
            installation_id,
        )
        # Installation tokens live for one hour
        self._token_cache[cache_key] = (token, time.time() + 55 * 60)
        return token

    async def _get_headers(self, owner: str, repo: str) -> dict[str, str]:
        token = await self._installation_token(owner, repo)
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    # ── HTTP helpers ─────────────────────────────────────────────────────

    async def _gh_request(
        self,
        method: str,
        owner: str,
        repo: str,
        path: str,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """Call the GitHub REST API for a repository. Returns parsed JSON (or None)."""
        headers: dict[str, str] = await self._get_headers(owner, repo)
        async with httpx.AsyncClient(timeout=30.0) as client:
            resp: httpx.Response = await client.request(
                method,
                f"{GITHUB_API_BASE}/repos/{owner}/{repo}{path}",
                headers=headers,
                params=params,
                json=payload,
            )
            resp.raise_for_status()
            if resp.status_code == 204 or not resp.content:
                return None
            return resp.json()

    async def _gh_get(self, owner: str, repo: str, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self._gh_request("GET", owner, repo, path, params=params)

    # ── Pull requests ────────────────────────────────────────────────────

    @staticmethod
    def _summarize_pr(pr: dict[str, Any]) -> dict[str, Any]:
        head: dict[str, Any] = pr.get("head") or {}
        base: dict[str, Any] = pr.get("base") or {}
        return {
            "url": pr.get("html_url"),
            "number": pr.get("number"),
            "title": pr.get("title"),
            "user": _login(pr.get("user")),
            "state": pr.get("state"),
            "body": pr.get("body"),
            "labels": [
                {"name": label.get("name"), "description": label.get("description")}
                for label in pr.get("labels") or []
            ],
            "created_at": pr.get("created_at"),
            "updated_at": pr.get("updated_at"),
            "closed_at": pr.get("closed_at"),
            "merged_at": pr.get("merged_at"),
            "assignee": _login(pr.get("assignee")),
            "reviewers": [_login(r) for r in pr.get("requested_reviewers") or []],
            "head": {"repo": (head.get("repo") or {}).get("name"), "ref": head.get("ref")},
            "base": {"repo": (base.get("repo") or {}).get("name"), "ref": base.get("ref")},
            "auto_merge": pr.get("auto_merge"),
            "draft": pr.get("draft"),
        }

    async def list_pull_requests(self, *, owner: str, repo: str) -> list[dict[str, Any]]:
        pulls: list[dict[str, Any]] = await self._gh_get(owner, repo, "/pulls")
        return [self._summarize_pr(pr) for pr in pulls]

    async def get_pull_request(self, *, owner: str, repo: str, pull_number: int) -> dict[str, Any]:
        pr: dict[str, Any] = await self._gh_get(owner, repo, f"/pulls/{pull_number}")
        summary = self._summarize_pr(pr)
        summary.update({
            "merged": pr.get("merged"),
            "mergeable": pr.get("mergeable"),
            "rebaseable": pr.get("rebaseable"),
            "mergeable_state": pr.get("mergeable_state"),
            "merged_by": _login(pr.get("merged_by")),
            "comments": pr.get("comments"),
            "review_comments": pr.get("review_comments"),
            "maintainer_can_modify": pr.get("maintainer_can_modify"),
            "commits": pr.get("commits"),
            "additions": pr.get("additions"),
            "deletions": pr.get("deletions"),
            "changed_files": pr.get("changed_files"),
        })
        return summary

    async def merge_pull_request(
        self,
        *,
        owner: str,
        repo: str,
        pull_number: int,
        merge_method: str = "squash",
        commit_title: str | None = None,
        commit_message: str | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"merge_method": merge_method or "squash"}
        if commit_title:
            payload["commit_title"] = commit_title
        if commit_message:
            payload["commit_message"] = commit_message
        logger.info("[github] Merging %s/%s#%s (%s)", owner, repo, pull_number, payload["merge_method"])
        return await self._gh_request("PUT", owner, repo, f"/pulls/{pull_number}/merge", payload=payload)

    async def update_pull_request_branch(self, *, owner: str, repo: str, pull_number: int) -> dict[str, Any]:
        return await self._gh_request("PUT", owner, repo, f"/pulls/{pull_number}/update-branch", payload={})

    async def list_pull_request_files(self, *, owner: str, repo: str, pull_number: int) -> list[dict[str, Any]]:
        files: list[dict[str, Any]] = await self._gh_get(owner, repo, f"/pulls/{pull_number}/files")
        return [
            {
                "filename": f.get("filename"),
                "status": f.get("status"),
                "additions": f.get("additions"),
                "deletions": f.get("deletions"),
                "changes": f.get("changes"),
                "raw_url": f.get("raw_url"),
                "patch": f.get("patch"),
            }
            for f in files
        ]

    async def list_pull_request_commits(self, *, owner: str, repo: str, pull_number: int) -> list[dict[str, Any]]:
        commits: list[dict[str, Any]] = await self._gh_get(owner, repo, f"/pulls/{pull_number}/commits")
        return [
            {
                "url": c.get("url"),
                "html_url": c.get("html_url"),
                "author": _login(c.get("author")),
                "committer": _login(c.get("committer")),
                "message": (c.get("commit") or {}).get("message"),
                "verified": ((c.get("commit") or {}).get("verification") or {}).get("verified"),
            }
            for c in commits
        ]

    async def request_reviewers(
        self, *, owner: str, repo: str, pull_number: int, reviewers: list[str]
    ) -> dict[str, Any]:
        await self._gh_request(
            "POST", owner, repo, f"/pulls/{pull_number}/requested_reviewers",
            payload={"reviewers": reviewers},
        )
        return {"message": f"Requested review to {','.join(reviewers)}"}

    # ── Reviews ──────────────────────────────────────────────────────────

    async def list_reviews(self, *, owner: str, repo: str, pull_number: int) -> list[dict[str, Any]]:
        reviews: list[dict[str, Any]] = await self._gh_get(owner, repo, f"/pulls/{pull_number}/reviews")
        return [
            {
                "id": r.get("id"),
                "user": _login(r.get("user")),
                "body": r.get("body"),
                "state": r.get("state"),
                "html_url": r.get("html_url"),
                "submitted_at": r.get("submitted_at"),
                "commit_id": r.get("commit_id"),
            }
            for r in reviews
        ]

    async def create_review(
        self,
        *,
        owner: str,
        repo: str,
        pull_number: int,
        event: str,
        comments: list[dict[str, Any]] | None = None,
        body: str | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"event": event}
        if body:
            payload["body"] = body
        if comments:
            payload["comments"] = comments
        review: dict[str, Any] = await self._gh_request(
            "POST", owner, repo, f"/pulls/{pull_number}/reviews", payload=payload
        )
        return {"message": f"created review for {review.get('id')}"}

    async def list_review_comments(self, *, owner: str, repo: str, pull_number: int) -> list[dict[str, Any]]:
        comments: list[dict[str, Any]] = await self._gh_get(owner, repo, f"/pulls/{pull_number}/comments")
        keys = (
            "id", "pull_request_review_id", "path", "position", "commit_id", "body",
            "created_at", "updated_at", "html_url", "start_line", "original_start_line",
            "start_side", "line", "original_line", "side",
        )
        return [
            {**{key: c.get(key) for key in keys}, "user": _login(c.get("user"))}
            for c in comments
        ]

    async def update_review_comment(self, *, owner: str, repo: str, comment_id: int, body: str) -> dict[str, Any]:
        await self._gh_request("PATCH", owner, repo, f"/pulls/comments/{comment_id}", payload={"body": body})
        return {"message": f"updated review comment {comment_id}"}

    async def delete_review_comment(self, *, owner: str, repo: str, comment_id: int) -> dict[str, Any]:
        await self._gh_request("DELETE", owner, repo, f"/pulls/comments/{comment_id}")
        return {"message": f"deleted review comment {comment_id}"}

    # ── Issues ───────────────────────────────────────────────────────────

    async def list_issue_comments(self, *, owner: str, repo: str, issue_number: int) -> list[dict[str, Any]]:
        comments: list[dict[str, Any]] = await self._gh_get(owner, repo, f"/issues/{issue_number}/comments")
        return [
            {
                "user": _login(c.get("user")),
                "body": c.get("body"),
                "created_at": c.get("created_at"),
                "updated_at": c.get("updated_at"),
                "html_url": c.get("html_url"),
            }
            for c in comments
        ]

    async def create_issue_comment(self, *, owner: str, repo: str, issue_number: int, body: str) -> dict[str, Any]:
        comment: dict[str, Any] = await self._gh_request(
            "POST", owner, repo, f"/issues/{issue_number}/comments", payload={"body": body}
        )
        return {"url": comment.get("url"), "html_url": comment.get("html_url")}

    async def add_labels(self, *, owner: str, repo: str, issue_number: int, labels: list[str]) -> dict[str, Any]:
        await self._gh_request(
            "POST", owner, repo, f"/issues/{issue_number}/labels", payload={"labels": labels}
        )
        return {"message": f"added labels {','.join(labels)}"}

    # ── Contents ─────────────────────────────────────────────────────────

    async def get_contents(
        self, *, owner: str, repo: str, path: str, ref: str | None = None
    ) -> dict[str, Any] | list[dict[str, Any]]:
        params: dict[str, Any] = {"ref": ref} if ref else {}
        data: Any = await self._gh_get(owner, repo, f"/contents/{path.lstrip('/')}", params=params)

        if isinstance(data, list):
            return [
                {
                    "type": child.get("type"),
                    "size": child.get("size"),
                    "name": child.get("name"),
                    "path": child.get("path"),
                    "html_url": child.get("html_url"),
                }
                for child in data
            ]

        result: dict[str, Any] = {
            "type": data.get("type"),
            "size": data.get("size"),
            "name": data.get("name"),
            "path": data.get("path"),
            "html_url": data.get("html_url"),
        }
        if data.get("type") == "file":
            result["encoding"] = data.get("encoding")
            result["content"] = data.get("content")
        return result
