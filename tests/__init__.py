from windsurf_status.core.protobuf import dumps


class FakeResponse:
    def __init__(self, status: int, text: str):
        self.status = status
        self._text = text

    async def text(self):
        return self._text


class FakeSession:
    """aiohttp.ClientSession replacement with prepared responses by method."""

    def __init__(self, responses: dict):
        self.responses = responses
        self.requests = []

    async def post(self, url: str, **kwargs):
        self.requests.append((url, kwargs))
        resp = self.responses[url.rsplit("/", 1)[1]]
        if isinstance(resp, Exception):
            raise resp
        return resp


def user_status_blob(name=None, email=None, plan_status: dict = None) -> bytes:
    data = {}
    if name is not None:
        data[3] = name
    if email is not None:
        data[7] = email
    if plan_status is not None:
        data[13] = plan_status
    return dumps(data)


# JSON => Python
true = True
false = False
null = None
