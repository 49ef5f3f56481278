"""Minimal observable state holder for publishing the current media list."""

from typing import Callable, Generic, List, TypeVar

from instafeed.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Observer = Callable[[T], None]


class StateHolder(Generic[T]):
    """
    Holds the latest value and notifies subscribers on every publish.

    Subscribers receive the current value immediately on subscription.
    """

    def __init__(self, initial: T):
        self._value = initial
        self._observers: List[Observer] = []

    @property
    def value(self) -> T:
        return self._value

    def publish(self, value: T) -> None:
        self._value = value
        for observer in list(self._observers):
            try:
                observer(value)
            except Exception:
                logger.exception("Observer raised while handling update")

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """
        Register ``observer``.

        Returns:
            Callable that removes the subscription
        """
        self._observers.append(observer)
        observer(self._value)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def clear_observers(self) -> None:
        self._observers.clear()
