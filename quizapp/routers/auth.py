import logging

import httpx
from authlib.integrations.starlette_client import OAuth, OAuthError
from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from .. import models
from ..core import config, security
from ..core.auth import check_login_expires, end_login, start_login
from ..core.csrf import validate_csrf
from ..core.sessions import flash
from ..core.templates import render
from ..database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(check_login_expires), Depends(validate_csrf)])

# --- OAUTH PROVIDERS ---
# A provider is registered only when its credentials are configured.
oauth = OAuth()

if config.GITHUB_CLIENT_ID and config.GITHUB_CLIENT_SECRET:
    oauth.register(
        name="github",
        client_id=config.GITHUB_CLIENT_ID,
        client_secret=config.GITHUB_CLIENT_SECRET,
        access_token_url="https://github.com/login/oauth/access_token",
        authorize_url="https://github.com/login/oauth/authorize",
        api_base_url="https://api.github.com/",
        client_kwargs={"scope": "read:user"},
    )

if config.TWITTER_CONSUMER_KEY and config.TWITTER_CONSUMER_SECRET:
    oauth.register(
        name="twitter",
        client_id=config.TWITTER_CONSUMER_KEY,
        client_secret=config.TWITTER_CONSUMER_SECRET,
        request_token_url="https://api.twitter.com/oauth/request_token",
        access_token_url="https://api.twitter.com/oauth/access_token",
        authorize_url="https://api.twitter.com/oauth/authenticate",
        api_base_url="https://api.twitter.com/1.1/",
    )

if config.GOOGLE_CLIENT_ID and config.GOOGLE_CLIENT_SECRET:
    oauth.register(
        name="google",
        client_id=config.GOOGLE_CLIENT_ID,
        client_secret=config.GOOGLE_CLIENT_SECRET,
        server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
        client_kwargs={"scope": "openid email profile"},
    )

if config.LINKEDIN_CLIENT_ID and config.LINKEDIN_CLIENT_SECRET:
    oauth.register(
        name="linkedin",
        client_id=config.LINKEDIN_CLIENT_ID,
        client_secret=config.LINKEDIN_CLIENT_SECRET,
        server_metadata_url="https://www.linkedin.com/oauth/.well-known/openid-configuration",
        client_kwargs={"scope": "openid profile email"},
    )


def enabled_providers():
    return [name for name in models.ACCOUNT_TYPES if oauth.create_client(name) is not None]


def get_provider(provider: str):
    client = oauth.create_client(provider) if provider in models.ACCOUNT_TYPES else None
    if client is None:
        raise HTTPException(status_code=404, detail=f"Login with {provider} is not available")
    return client


async def fetch_profile(provider: str, client, token) -> tuple:
    """(profile id, profile name) of the account that just logged in."""
    if provider == "github":
        resp = await client.get("user", token=token)
        resp.raise_for_status()
        profile = resp.json()
        return str(profile["id"]), profile["login"]
    if provider == "twitter":
        resp = await client.get("account/verify_credentials.json", token=token)
        resp.raise_for_status()
        profile = resp.json()
        return profile["id_str"], profile["screen_name"]
    # OpenID Connect providers
    userinfo = token.get("userinfo") or await client.userinfo(token=token)
    return str(userinfo["sub"]), userinfo.get("email") or userinfo.get("name") or userinfo["sub"]


def find_or_create_oauth_user(db: Session, provider: str, profile_id: str, profile_name: str) -> models.User:
    account_type_id = models.ACCOUNT_TYPES[provider]
    user = db.query(models.User).filter(
        models.User.account_type_id == account_type_id,
        models.User.profile_id == profile_id,
    ).first()

    if user is None:
        username = f"{provider}/{profile_name}"
        if db.query(models.User).filter(models.User.username == username).first():
            username = f"{provider}/{profile_id}"
        user = models.User(
            username=username,
            account_type_id=account_type_id,
            profile_id=profile_id,
            profile_name=profile_name,
            token=security.create_token(),
        )
        db.add(user)
        logger.info("New %s user: %s", provider, username)
    else:
        user.profile_name = profile_name
    db.commit()
    db.refresh(user)
    return user


# --- LOGIN ---
@router.get("/login")
async def login_page(request: Request):
    return render(request, "session/new.html", {"providers": enabled_providers()})


@router.post("/login")
async def login(request: Request, username: str = Form(""), password: str = Form(""), db: Session = Depends(get_db)):
    user = db.query(models.User).filter(models.User.username == username).first()

    if not user or not user.verify_password(password):
        logger.warning("Failed login attempt for %r", username)
        flash(request, "Authentication has failed. Retry it again.", "error")
        return render(request, "session/new.html", {"providers": enabled_providers()})

    start_login(request, user)
    return RedirectResponse(url="/goback", status_code=status.HTTP_303_SEE_OTHER)


# --- LOGOUT ---
@router.delete("/login")
async def logout(request: Request):
    end_login(request)
    return RedirectResponse(url="/goback", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/goback")
async def goback(request: Request):
    url = request.session.pop("back_url", None) or "/"
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


# --- OAUTH ---
@router.get("/auth/{provider}")
async def oauth_login(request: Request, provider: str):
    client = get_provider(provider)
    redirect_uri = request.url_for("oauth_callback", provider=provider)
    return await client.authorize_redirect(request, str(redirect_uri))


@router.get("/auth/{provider}/callback", name="oauth_callback")
async def oauth_callback(request: Request, provider: str, db: Session = Depends(get_db)):
    client = get_provider(provider)
    try:
        token = await client.authorize_access_token(request)
        profile_id, profile_name = await fetch_profile(provider, client, token)
    except (OAuthError, httpx.HTTPError, KeyError) as e:
        logger.warning("%s login failed: %s", provider, e)
        flash(request, f"Login with {provider} has failed.", "error")
        return RedirectResponse(url="/login", status_code=status.HTTP_303_SEE_OTHER)

    user = find_or_create_oauth_user(db, provider, profile_id, profile_name)
    start_login(request, user)
    return RedirectResponse(url="/goback", status_code=status.HTTP_303_SEE_OTHER)
