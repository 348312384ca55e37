import json
from django.contrib import messages
from django.http import JsonResponse
from django.shortcuts import redirect


def toast(title, description='', variant='default'):
    return {'title': title, 'description': description, 'variant': variant}


def _record_toast(request, notice):
    text = f"{notice['title']}: {notice['description']}" if notice.get('description') else notice['title']
    if notice.get('variant') == 'destructive':
        messages.error(request, text)
    else:
        messages.success(request, text)


def checkout_response(request, data, notice=None, redirect_url=None, status=200, events=None):
    """
    JSON response for the checkout endpoints.

    The toast travels in the body, in django messages, and for htmx
    requests as a `showToast` trigger; redirects become `HX-Redirect`.
    Plain browser navigations with a redirect get a real redirect.
    """
    if notice:
        _record_toast(request, notice)

    if redirect_url and not request.htmx and request.method == 'GET':
        return redirect(redirect_url)

    body = dict(data)
    body['toast'] = notice
    body['redirect_url'] = redirect_url
    response = JsonResponse(body, status=status)

    if request.htmx:
        trigger = dict.fromkeys(events or [])
        if notice:
            trigger['showToast'] = {
                'title': notice['title'],
                'message': notice.get('description') or notice['title'],
                'type': 'error' if notice.get('variant') == 'destructive' else 'success',
            }
        if trigger:
            response['HX-Trigger'] = json.dumps(trigger)
        if redirect_url:
            response['HX-Redirect'] = redirect_url

    return response


def request_data(request):
    """Body of a POST as a dict, whether it was sent as JSON or as a form."""
    if request.content_type == 'application/json':
        try:
            data = json.loads(request.body or b'{}')
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
    return request.POST.dict()
