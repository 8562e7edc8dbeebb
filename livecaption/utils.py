import asyncio


class InterruptError(Exception):
    pass


async def interruptable_get(queue, event):
    """Get the next item from queue unless event is set first.

    :raises InterruptError: if event is set before an item is available.
    """
    if event.is_set():
        raise InterruptError

    # fast path
    if not queue.empty():
        return queue.get_nowait()

    get_fut = asyncio.ensure_future(queue.get())
    interrupt_fut = asyncio.ensure_future(event.wait())
    try:
        await asyncio.wait((get_fut, interrupt_fut),
                           return_when=asyncio.FIRST_COMPLETED)
    finally:
        interrupt_fut.cancel()
        if not get_fut.done():
            get_fut.cancel()

    if get_fut.done() and not get_fut.cancelled():
        return get_fut.result()
    raise InterruptError
