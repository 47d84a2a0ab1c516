from fastapi import Request

from ..state.app_context import AppContext


def get_context(request: Request) -> AppContext:
    return request.app.state.context
