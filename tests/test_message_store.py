"""Tests for the in-memory message list and its counters."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import unittest

from chatmux.message_store import MessageStore, MessageType
from chatmux.search.prefixes import SEARCH_PREFIX
from chatmux.store import StoredMessage

FENCED = "Try:\n```python\nprint({n})\n```\n"


class MessageStoreTests(unittest.TestCase):
    """Validate ids, code-block numbering and prompt assembly."""

    def test_ids_are_sequential_and_blocks_numbered_globally(self) -> None:
        store = MessageStore()
        store.append(MessageType.USER, "one")
        first = store.append(MessageType.ASSISTANT, FENCED.format(n=1) + FENCED.format(n=2))
        store.append(MessageType.USER, "two")
        second = store.append(MessageType.ASSISTANT, FENCED.format(n=3))

        self.assertEqual([m.id for m in store.messages], [1, 2, 3, 4])
        self.assertEqual([b.number for b in first.code_blocks], [1, 2])
        self.assertEqual([b.number for b in second.code_blocks], [3])
        self.assertEqual(store.next_block_number, 4)
        block = store.find_code_block(3)
        assert block is not None
        self.assertEqual(block.content, "print(3)")

    def test_user_and_search_messages_get_no_numbered_blocks(self) -> None:
        store = MessageStore()
        user = store.append(MessageType.USER, FENCED.format(n=1))
        search = store.append(MessageType.SEARCH, FENCED.format(n=2))
        self.assertEqual(user.code_blocks, [])
        self.assertEqual(search.code_blocks, [])
        self.assertEqual(store.next_block_number, 1)

    def test_withdraw_releases_newest_id_only(self) -> None:
        store = MessageStore()
        first = store.append(MessageType.USER, "a")
        second = store.append(MessageType.USER, "b")
        self.assertFalse(store.withdraw(first))
        self.assertTrue(store.withdraw(second))
        self.assertEqual(store.next_id, 2)
        self.assertEqual(len(store), 1)

    def test_clear_resets_both_counters(self) -> None:
        store = MessageStore()
        store.append(MessageType.ASSISTANT, FENCED.format(n=1))
        store.clear()
        self.assertEqual(len(store), 0)
        self.assertEqual(store.next_id, 1)
        self.assertEqual(store.next_block_number, 1)

    def test_prompt_contains_prior_turns_then_current(self) -> None:
        store = MessageStore()
        store.append(MessageType.USER, "hello")
        store.append(MessageType.ASSISTANT, "hi")
        current = store.append(MessageType.USER, "how are you?")
        self.assertEqual(
            store.build_prompt(current),
            "User: hello\nAssistant: hi\nUser: how are you?",
        )

    def test_prompt_excludes_search_turns(self) -> None:
        store = MessageStore()
        store.append(MessageType.USER, SEARCH_PREFIX + "cats", search_turn=True)
        store.append(MessageType.SEARCH, "## Search Results\n...")
        current = store.append(MessageType.USER, "summarize")
        self.assertEqual(store.build_prompt(current), "User: summarize")

    def test_replace_from_history_keeps_block_counter(self) -> None:
        store = MessageStore()
        store.append(MessageType.ASSISTANT, FENCED.format(n=1))
        base = datetime.now(timezone.utc)
        rows = [
            StoredMessage("c1", "user", SEARCH_PREFIX + "cats", base),
            StoredMessage("c1", "search", "results", base + timedelta(seconds=1)),
            StoredMessage("c1", "assistant", FENCED.format(n=9), base + timedelta(seconds=2)),
        ]
        store.replace_from_history(rows)

        self.assertEqual([m.id for m in store.messages], [1, 2, 3])
        self.assertTrue(store.messages[0].search_turn)
        self.assertEqual(store.messages[2].code_blocks[0].number, None)
        self.assertEqual(store.messages[2].store_id, rows[2].id)
        self.assertEqual(store.next_id, 4)
        self.assertEqual(store.next_block_number, 2)
        self.assertIsNone(store.find_code_block(1))

    def test_replace_from_history_can_number_blocks(self) -> None:
        store = MessageStore()
        store.append(MessageType.ASSISTANT, FENCED.format(n=1))
        rows = [StoredMessage("c1", "assistant", FENCED.format(n=7))]
        store.replace_from_history(rows, number_code_blocks=True)
        self.assertEqual(store.messages[0].code_blocks[0].number, 2)
        self.assertEqual(store.next_block_number, 3)


if __name__ == "__main__":
    unittest.main()
