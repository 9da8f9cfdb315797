# client/api.py

import os

import requests
from dotenv import find_dotenv, load_dotenv

# Values from .env (looked up from the working directory) must be in the
# environment before API_URL is read below.
load_dotenv(find_dotenv(usecwd=True))

# Base URL of the comment board API
API_URL = os.getenv("API_URL", "http://localhost:8000")


class ApiError(Exception):
    def __init__(self, status_code, message):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _error_message(response):
    try:
        return response.json().get("error", response.reason)
    except ValueError:
        return response.reason


def _check(response):
    if not response.ok:
        raise ApiError(response.status_code, _error_message(response))
    return response.json()


# -------------------------------
# Users
# -------------------------------

def list_user_ids():
    """
    Returns the ids of every user, ascending.
    """
    res = requests.get(f"{API_URL}/users")
    return [user["id"] for user in _check(res)]


def get_user(user_id):
    """
    Looks up one user by id. Returns None when the user does not exist.
    """
    res = requests.get(f"{API_URL}/user/{user_id}")
    if res.status_code == 404:
        return None
    users = _check(res)
    return users[0] if users else None


def populate_users():
    res = requests.get(f"{API_URL}/populate")
    return _check(res)


# -------------------------------
# Comments
# -------------------------------

def list_comments():
    """
    Returns every comment, newest first. Content is already escaped by the server.
    """
    res = requests.get(f"{API_URL}/comments")
    return _check(res)


def post_comment(content):
    res = requests.post(f"{API_URL}/comment", json={"content": content})
    return _check(res)["comment"]


def delete_comment(comment_id):
    res = requests.delete(f"{API_URL}/comment/{comment_id}")
    return _check(res)
