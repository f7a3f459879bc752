class FakeRequest:
    def __init__(self, headers):
        self.headers = headers


class FakeMouse:
    def __init__(self):
        self.moves = []
        self.wheels = []

    def move(self, x, y, steps=1):
        self.moves.append((x, y))

    def wheel(self, dx, dy):
        self.wheels.append((dx, dy))


class FakePage:
    """
    Stand-in for a Playwright page.

    goto_headers: request header maps fired while navigating
    wait_headers: {n: [headers, ...]} fired during the n-th wait_for_timeout call
    evaluate: callable (expression, arg, page) -> result
    goto_error: exception raised by goto (or {url: exception})
    """

    def __init__(self, goto_headers=(), wait_headers=None, evaluate=None, goto_error=None):
        self.handlers = {}
        self.waits = []
        self.visited = []
        self.url = None
        self.mouse = FakeMouse()
        self.goto_headers = list(goto_headers)
        self.wait_headers = wait_headers or {}
        self.evaluate_fn = evaluate
        self.goto_error = goto_error

    def on(self, event, fn):
        self.handlers.setdefault(event, []).append(fn)

    def remove_listener(self, event, fn):
        self.handlers[event].remove(fn)

    def fire(self, headers):
        for fn in list(self.handlers.get("request", [])):
            fn(FakeRequest(headers))

    def goto(self, url, **kwargs):
        self.url = url
        self.visited.append(url)
        error = self.goto_error.get(url) if isinstance(self.goto_error, dict) else self.goto_error
        if error:
            raise error
        for headers in self.goto_headers:
            self.fire(headers)

    def wait_for_timeout(self, ms):
        self.waits.append(ms)
        for headers in self.wait_headers.get(len(self.waits), []):
            self.fire(headers)

    def wait_for_selector(self, selector, timeout=None):
        return None

    def click(self, selector):
        pass

    def evaluate(self, expression, arg=None):
        if self.evaluate_fn is None:
            return None
        return self.evaluate_fn(expression, arg, self)


class FakeSession:
    def __init__(self, page=None):
        self.page = page or FakePage()
        self.closed = False

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class FakeResponse:
    def __init__(self, status_code=200, body=None, raw=None):
        self.status_code = status_code
        self.body = body
        self.raw = raw

    def json(self):
        if self.raw is not None:
            raise ValueError("not json")
        return self.body


class FakeHttp:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response
