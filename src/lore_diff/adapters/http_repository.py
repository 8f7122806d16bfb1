"""
HTTP ロアリポジトリ

SillyTavern 互換サーバーの world info API からロア集合を取得・保存するリポジトリです。
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests

from .lore_repository import (
    LoreRepository,
    RepositoryUnavailableError,
    WriteResult,
    dedupe_names,
)


class HttpLoreRepository(LoreRepository):
    """
    world info API 向けリポジトリ実装

    requests による同期 HTTP 呼び出しを asyncio.to_thread で実行します。
    """

    LIST_PATH = "/api/settings/get"
    GET_PATH = "/api/worldinfo/get"
    EDIT_PATH = "/api/worldinfo/edit"

    # HTTP リクエストヘッダー
    HEADERS = {
        "Content-Type": "application/json",
        "Accept": "application/json",
    }

    # リクエストタイムアウト（秒）
    TIMEOUT = 30

    def __init__(
        self,
        base_url: str,
        timeout: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        HttpLoreRepository を初期化

        Args:
            base_url: サーバーのベース URL (例: "http://localhost:8000")
            timeout: リクエストタイムアウト（秒）
            headers: 追加の HTTP ヘッダー (認証トークンなど)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or self.TIMEOUT
        self.headers = {**self.HEADERS, **(headers or {})}
        self.logger = logging.getLogger(__name__)

    async def list_names(self) -> List[str]:
        """
        world_names から名前一覧を取得

        Raises:
            RepositoryUnavailableError: HTTP エラー・ネットワークエラー発生時
        """
        response = await asyncio.to_thread(self._post, self.LIST_PATH, {})
        self._raise_for_status(response, self.LIST_PATH)
        payload = self._json(response, self.LIST_PATH)
        names = payload.get("world_names") if isinstance(payload, dict) else None
        return dedupe_names(names or [])

    async def get(self, name: str) -> Optional[Any]:
        """
        名前を指定して生集合を取得

        Returns:
            Optional[Any]: 生集合。サーバーが 404 を返した場合は None

        Raises:
            RepositoryUnavailableError: HTTP エラー・ネットワークエラー発生時
        """
        if not name:
            return None

        response = await asyncio.to_thread(self._post, self.GET_PATH, {"name": name})
        if response.status_code == 404:
            return None
        self._raise_for_status(response, self.GET_PATH)
        return self._json(response, self.GET_PATH)

    async def save(self, name: str, data: Any) -> WriteResult:
        """
        生集合を保存

        Note:
            失敗時は例外をスローせず WriteResult(ok=False) を返します。
        """
        if not name or data is None:
            return WriteResult(ok=False, reason="invalid_params")

        try:
            response = await asyncio.to_thread(
                self._post, self.EDIT_PATH, {"name": name, "data": data}
            )
        except RepositoryUnavailableError as e:
            self.logger.error(f"Failed to save '{name}': {e}")
            return WriteResult(ok=False, reason=str(e))

        if not response.ok:
            self.logger.error(
                f"Failed to save '{name}'",
                extra={"status_code": response.status_code},
            )
            return WriteResult(ok=False, reason=f"http_{response.status_code}")

        self.logger.info(f"Saved '{name}'")
        return WriteResult(ok=True)

    def _post(self, path: str, payload: Dict[str, Any]) -> requests.Response:
        """
        POST リクエストを送信

        Raises:
            RepositoryUnavailableError: ネットワークエラー発生時
        """
        url = f"{self.base_url}{path}"
        try:
            return requests.post(
                url,
                json=payload,
                headers=self.headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise RepositoryUnavailableError(
                f"ネットワークエラー: {e}",
                url=url,
            )

    def _raise_for_status(self, response: requests.Response, path: str) -> None:
        url = f"{self.base_url}{path}"
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise RepositoryUnavailableError(
                f"HTTP エラー: {e}",
                url=url,
                status_code=response.status_code,
            )

    def _json(self, response: requests.Response, path: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise RepositoryUnavailableError(
                f"不正なレスポンス: {e}",
                url=f"{self.base_url}{path}",
                status_code=response.status_code,
            )
