"""Console oracle: operator answers from the terminal."""

import asyncio

import click

from .session import ContextQuestion


class ConsoleOracle:
    """
    Ask the operator via click prompts.

    Prompts run in a worker thread so BLE notifications keep being
    delivered on the event loop while waiting for input.
    """

    async def ask(self, question: ContextQuestion) -> str:
        return await asyncio.to_thread(
            click.prompt,
            question.prompt,
            default=question.default or "",
            show_default=bool(question.default),
        )

    async def confirm(self, question: str) -> bool:
        return await asyncio.to_thread(click.confirm, f"  {question}", default=False)
