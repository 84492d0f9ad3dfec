"""API — JSON REST API on a mounted router.

CRUD for a simple "items" resource. Demonstrates a router mounted under
``/api``, a param hook that loads the item once per request, a
body-parsing middleware and an error handler that turns lookups into
JSON 404s.

Run with any ASGI server, for example::

    uvicorn app:app
"""

import threading
from dataclasses import dataclass

from warble import App, NotFound
from warble.errors import BadRequest

app = App()
api = app.create_router()


# ---------------------------------------------------------------------------
# In-memory storage (thread-safe)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Item:
    id: int
    title: str
    done: bool


_items: dict[int, Item] = {}
_next_id = 1
_lock = threading.Lock()


def _get_next_id() -> int:
    global _next_id
    with _lock:
        n = _next_id
        _next_id += 1
        return n


def _to_dict(item: Item) -> dict:
    return {"id": item.id, "title": item.title, "done": item.done}


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


async def parse_json(request, response, next):
    """Fill request.body for JSON requests."""
    if request.is_json:
        request.body = await request.json()
    await next()


def load_item(request, response, next, value):
    """Resolve :item_id once per request."""
    with _lock:
        item = _items.get(int(value)) if value.isdigit() else None
    if item is None:
        next(NotFound(f"Item {value} not found"))
        return
    request.body = {"item": item, **(request.body or {})}
    next()


api.use(parse_json)
api.param("item_id", load_item)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@api.get("/items")
def list_items(request, response, next):
    """List items with optional limit and offset."""
    limit = min(max(int(request.query.get("limit", "50")), 1), 100)
    offset = max(int(request.query.get("offset", "0")), 0)

    with _lock:
        all_items = sorted(_items.values(), key=lambda x: x.id)
    page = all_items[offset : offset + limit]

    return {
        "data": [_to_dict(i) for i in page],
        "meta": {"limit": limit, "offset": offset, "total": len(all_items)},
    }


@api.post("/items")
def create_item(request, response, next):
    """Create a new item."""
    title = str((request.body or {}).get("title", "")).strip()
    if not title:
        raise BadRequest("title is required")

    with _lock:
        item_id = _get_next_id()
        item = Item(id=item_id, title=title, done=False)
        _items[item_id] = item

    response.status(201).json({"data": _to_dict(item)})


@api.get("/items/:item_id")
def get_item(request, response, next):
    return {"data": _to_dict(request.body["item"])}


@api.put("/items/:item_id")
def update_item(request, response, next):
    """Update an existing item."""
    item = request.body["item"]
    raw_title = request.body.get("title")
    raw_done = request.body.get("done")
    title = str(raw_title).strip() if raw_title is not None else item.title
    done = bool(raw_done) if raw_done is not None else item.done

    updated = Item(id=item.id, title=title, done=done)
    with _lock:
        _items[item.id] = updated
    return {"data": _to_dict(updated)}


@api.delete("/items/:item_id")
def delete_item(request, response, next):
    item = request.body["item"]
    with _lock:
        _items.pop(item.id, None)
    return {"data": _to_dict(item)}


app.use("/api", api)
