"""
Authentication blueprint (mounted at /api/auth):
- POST /register
- POST /login
- POST /refresh
- POST /logout
- POST /logout-all
- GET  /profile
- GET  /verify

Tokens go out two ways at once: as HttpOnly, SameSite=Strict cookies and as
"accessToken" in the JSON body (for clients that cannot read those cookies).
"""
from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from models.schemas.user import IdentityOutSchema, UserLoginSchema, UserOutSchema, UserRegisterSchema
from services.errors import ErrorKind, ServiceError
from services.session import IssuedSession, SessionService
from utils.decorators import jwt_required
from utils.tokens import extract_bearer_token

bp = Blueprint("auth", __name__, url_prefix="/auth")

user_register_schema = UserRegisterSchema()
user_login_schema = UserLoginSchema()
user_out_schema = UserOutSchema()
identity_out_schema = IdentityOutSchema()


def _service() -> SessionService:
    return current_app.extensions["session_service"]


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ServiceError(ErrorKind.INVALID_REQUEST_BODY)
    return payload


def _set_token_cookie(response, name: str, value: str, max_age: int) -> None:
    response.set_cookie(
        name,
        value,
        max_age=max_age,
        path="/",
        httponly=True,
        samesite="Strict",
        secure=current_app.config["COOKIE_SECURE"],
    )


def _set_access_cookie(response, token: str) -> None:
    cfg = current_app.config
    _set_token_cookie(response, cfg["ACCESS_COOKIE_NAME"], token, cfg["ACCESS_COOKIE_MAX_AGE"])


def _set_session_cookies(response, issued: IssuedSession) -> None:
    cfg = current_app.config
    _set_access_cookie(response, issued.access_token)
    _set_token_cookie(response, cfg["REFRESH_COOKIE_NAME"], issued.refresh_token, cfg["REFRESH_COOKIE_MAX_AGE"])


def _clear_session_cookies(response) -> None:
    cfg = current_app.config
    for name in (cfg["ACCESS_COOKIE_NAME"], cfg["REFRESH_COOKIE_NAME"]):
        response.delete_cookie(
            name, path="/", httponly=True, samesite="Strict", secure=cfg["COOKIE_SECURE"]
        )


def _session_response(issued: IssuedSession, message: str, status: int):
    response = jsonify(
        {
            "message": message,
            "data": {
                "user": user_out_schema.dump(issued.user),
                "accessToken": issued.access_token,
            },
        }
    )
    response.status_code = status
    _set_session_cookies(response, issued)
    return response


@bp.post("/register")
def register():
    """
    Register a new user and start a session.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [email, password]
          properties:
            email: { type: string }
            password: { type: string }
            firstName: { type: string }
            lastName: { type: string }
    responses:
      201:
        description: Created (user + accessToken; cookies set)
      400:
        description: Validation error
      409:
        description: Email already registered
    """
    data = user_register_schema.load(_json_body())
    issued = _service().register(
        data["email"], data["password"], first_name=data["first_name"], last_name=data["last_name"]
    )
    return _session_response(issued, "User registered successfully", 201)


@bp.post("/login")
def login():
    """
    Login: returns the user and an access token; both tokens set as cookies
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           required: [email, password]
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK
      400:
        description: Validation error
      401:
        description: Invalid credentials or deactivated account
    """
    data = user_login_schema.load(_json_body())
    issued = _service().login(data["email"], data["password"])
    return _session_response(issued, "Login successful", 200)


@bp.post("/refresh")
def refresh():
    """
    Mint a new access token from a refresh token (cookie or Bearer header).
    The refresh token itself is not rotated.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK (new accessToken; access cookie updated)
      401:
        description: Missing, invalid, expired or revoked refresh token, or deactivated account
    """
    token = request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"])
    if not token:
        token = extract_bearer_token(request.headers.get("Authorization"))

    access_token = _service().refresh(token)

    response = jsonify({"message": "Token refreshed successfully", "data": {"accessToken": access_token}})
    _set_access_cookie(response, access_token)
    return response, 200


@bp.post("/logout")
@jwt_required()
def logout():
    """
    Logout: deletes the refresh token held in the cookie and clears both cookies
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    _service().logout(request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"]))

    response = jsonify({"message": "Logout successful"})
    _clear_session_cookies(response)
    return response, 200


@bp.post("/logout-all")
@jwt_required()
def logout_all():
    """
    Logout from all devices: deletes every refresh token of the current user
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    _service().logout_all(g.identity.user_id)

    response = jsonify({"message": "Logged out from all devices successfully"})
    _clear_session_cookies(response)
    return response, 200


@bp.get("/profile")
@jwt_required()
def profile():
    """
    Get current user profile
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
      404:
        description: User no longer exists
    """
    user = _service().get_profile(g.identity.user_id)
    return jsonify({"message": "Profile retrieved successfully", "data": user_out_schema.dump(user)}), 200


@bp.get("/verify")
@jwt_required()
def verify():
    """
    Check that the presented access token is valid
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Token is valid
      401:
        description: Unauthorized
    """
    return jsonify(
        {
            "message": "Token is valid",
            "data": {"authenticated": True, "user": identity_out_schema.dump(g.identity)},
        }
    ), 200
