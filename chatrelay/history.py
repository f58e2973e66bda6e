from typing import List, Sequence

from .types import Message


def filter_context_messages(messages: Sequence[Message]) -> List[Message]:
    """
    Drop everything up to and including the last context-clear marker.

    Messages with no text and no attachments carry nothing for the model and
    are dropped as well.
    """
    clear_index = -1
    for index, message in enumerate(messages):
        if message.type == "clear":
            clear_index = index

    return [m for m in messages[clear_index + 1:] if m.content or m.files]
