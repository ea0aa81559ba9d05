from fastapi import Request

from ..repository import StudyRepository
from ..search import SearchService


def get_repository(request: Request) -> StudyRepository:
    return request.app.state.repository


def get_search_service(request: Request) -> SearchService:
    return request.app.state.search
