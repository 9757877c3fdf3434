"""Hypermedia links for API responses.

Routes are addressed by name so that paths live in one place (``api.py``).
"""
from __future__ import annotations

from typing import Any

from fastapi import Request
from pydantic import BaseModel


class LinkInfo(BaseModel):
    href: str
    rel: str
    method: str


def link(
    request: Request,
    route_name: str,
    rel: str,
    method: str = "GET",
    *,
    query: dict[str, Any] | None = None,
    **path_params: Any,
) -> LinkInfo:
    url = request.url_for(route_name, **path_params)
    if query:
        url = url.include_query_params(**query)
    return LinkInfo(href=str(url), rel=rel, method=method)


def page_links(
    request: Request,
    route_name: str,
    *,
    page_number: int,
    page_size: int,
    has_next_page: bool,
    has_previous_page: bool,
) -> list[LinkInfo]:
    """``self`` plus ``next``/``prev`` when those pages exist.

    Filter and sort parameters of the current request are carried over.
    """
    carried = {
        key: value
        for key, value in request.query_params.items()
        if key not in ("pageNumber", "pageSize")
    }

    def page(number: int) -> dict[str, Any]:
        return {**carried, "pageNumber": number, "pageSize": page_size}

    links = [link(request, route_name, "self", query=page(page_number))]
    if has_next_page:
        links.append(link(request, route_name, "next", query=page(page_number + 1)))
    if has_previous_page:
        links.append(link(request, route_name, "prev", query=page(page_number - 1)))
    return links


def mission_links(request: Request, mission_id: int) -> list[LinkInfo]:
    return [
        link(request, "get_mission", "self", mission_id=mission_id),
        link(request, "update_mission", "update", "PUT", mission_id=mission_id),
        link(request, "delete_mission", "delete", "DELETE", mission_id=mission_id),
        link(request, "get_mission_rocket", "rocket", mission_id=mission_id),
        link(request, "list_missions", "collection"),
    ]


def rocket_links(request: Request, rocket_id: int) -> list[LinkInfo]:
    return [
        link(request, "get_rocket", "self", rocket_id=rocket_id),
        link(request, "update_rocket", "update", "PUT", rocket_id=rocket_id),
        link(request, "delete_rocket", "delete", "DELETE", rocket_id=rocket_id),
        link(request, "list_rocket_missions", "missions", rocket_id=rocket_id),
        link(request, "list_rockets", "collection"),
    ]
