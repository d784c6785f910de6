from typing import Any, List, Sequence

from questdb_client.coding.value_tree import ValueTree, url_encode


def to_url_encoded_key(path: Sequence[Any]) -> str:
    """Render a key path in bracket notation, e.g. ``parent[child][0]``."""
    if not path:
        return ""
    head = url_encode(str(path[0]), path)
    return head + "".join(f"[{url_encode(str(segment), path)}]" for segment in path[1:])


class FormSerializer:
    """Flattens a ValueTree into ``key=value`` pairs.

    Fragments at the root (empty path) are emitted bare, without a key.
    Children are visited in insertion order.
    """

    def __init__(self, split_variables_on: str = "&", split_key_value_on: str = "="):
        self.split_variables_on = split_variables_on
        self.split_key_value_on = split_key_value_on

    def serialize(self, tree: ValueTree, path: Sequence[Any] = ()) -> str:
        path = list(path)
        entries: List[str] = []
        key = to_url_encoded_key(path)
        for value in tree.values:
            encoded = value.as_url_encoded(path)
            if not path:
                entries.append(encoded)
            else:
                entries.append(f"{key}{self.split_key_value_on}{encoded}")
        for child_key, child in tree.children.items():
            rendered = self.serialize(child, path + [child_key])
            if rendered:
                entries.append(rendered)
        return self.split_variables_on.join(entries)
