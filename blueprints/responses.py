"""
blueprints/responses.py - Replies for the update endpoints
Scripts (PUT, XHR or Accept: application/json) get the message as a JSON
string with the status code. A plain HTML form post gets the message flashed
and is redirected.
"""

from flask import flash, jsonify, redirect, request


def wants_json():
    if request.method == 'PUT':
        return True
    if request.headers.get('X-Requested-With') == 'XMLHttpRequest':
        return True
    return request.accept_mimetypes.best == 'application/json'


def reply(message, status, redirect_to):
    """
    Args:
        message (str): user-facing message
        status (int): HTTP status of the JSON reply
        redirect_to (str): where a form post lands afterwards
    """
    if wants_json():
        return jsonify(message), status
    flash(message, 'success' if status < 400 else 'error')
    return redirect(redirect_to)
