from fastapi import APIRouter, Depends, Request
from openai import OpenAI

from config import GENERATION_RATE_LIMIT, Settings
from dependencies import get_ai_client, get_settings, get_current_user, limiter, CurrentUser
from schemas import (
    GenerateContentRequest, GenerateTitleRequest, GenerateTagsRequest, GenerateMetaRequest, envelope,
)
from services import ai_service

router = APIRouter(prefix="/generate", tags=["generate"])


@router.post("/content")
@limiter.limit(GENERATION_RATE_LIMIT)
def generate_content(request: Request, body: GenerateContentRequest,
                     current_user: CurrentUser = Depends(get_current_user),
                     client: OpenAI = Depends(get_ai_client), settings: Settings = Depends(get_settings)):
    """
    Drafts a full post body as HTML.

    Args:
        body (GenerateContentRequest): prompt plus tone, length and style.

    Returns:
        dict: the generated HTML, tokens used and an estimated cost in USD.

    Raises:
        UpstreamError: 429 when the provider rate limits us, 500 otherwise.
    """
    data = ai_service.generate_content(client, settings.openai_model, body.prompt, body.tone, body.length, body.style)
    return envelope(data, "Content generated successfully")


@router.post("/title")
@limiter.limit(GENERATION_RATE_LIMIT)
def generate_title(request: Request, body: GenerateTitleRequest,
                   current_user: CurrentUser = Depends(get_current_user),
                   client: OpenAI = Depends(get_ai_client), settings: Settings = Depends(get_settings)):
    data = ai_service.generate_titles(client, settings.openai_model, body.topic, body.keywords, body.style)
    return envelope(data, "Titles generated successfully")


@router.post("/tags")
@limiter.limit(GENERATION_RATE_LIMIT)
def generate_tags(request: Request, body: GenerateTagsRequest,
                  current_user: CurrentUser = Depends(get_current_user),
                  client: OpenAI = Depends(get_ai_client), settings: Settings = Depends(get_settings)):
    data = ai_service.generate_tags(client, settings.openai_model, body.content, body.topic, body.count)
    return envelope(data, "Tags generated successfully")


@router.post("/meta")
@limiter.limit(GENERATION_RATE_LIMIT)
def generate_meta(request: Request, body: GenerateMetaRequest,
                  current_user: CurrentUser = Depends(get_current_user),
                  client: OpenAI = Depends(get_ai_client), settings: Settings = Depends(get_settings)):
    data = ai_service.generate_meta(client, settings.openai_model, body.title, body.content, body.keywords)
    return envelope(data, "Meta description generated successfully")
