from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for a running climate monitor."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def render_chart(
        self,
        names: Sequence[str],
        title: str,
        xmin: Optional[float] = None,
        xmax: Optional[float] = None,
    ) -> bytes:
        params: List[Tuple[str, str]] = [("name", name) for name in names]
        params.append(("title", title))
        if xmin is not None:
            params.append(("xmin", repr(xmin)))
        if xmax is not None:
            params.append(("xmax", repr(xmax)))

        try:
            response = self._client.get("/render", params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            self._handle_transport_error(exc)
        return response.content

    def list_series(self) -> List[str]:
        try:
            response = self._client.get("/series")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            self._handle_transport_error(exc)
        series = response.json().get("series")
        if not isinstance(series, list):
            raise typer.BadParameter("Unexpected response payload when listing series.")
        return [str(name) for name in series]

    def _handle_transport_error(self, exc: httpx.TransportError) -> None:
        typer.secho(
            f"Cannot reach {self._config.base_url}: {exc}",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
