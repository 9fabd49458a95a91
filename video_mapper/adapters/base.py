"""Base adapter interfaces for queue backends."""
from abc import ABC, abstractmethod
from typing import Callable
from ..event_models import Message

MessageHandler = Callable[[Message], None]


class MessageProducer(ABC):
    """Abstract interface for writing messages to the outbound queue."""

    @abstractmethod
    def send_message(self, message: Message) -> None:
        """
        Send a message to the configured topic.

        Args:
            message: The outbound message

        Raises:
            ProducerUnavailableError: If the queue did not accept the message
        """
        pass

    @abstractmethod
    def connectivity_check(self) -> str:
        """
        Check if the outbound queue is reachable.

        Returns:
            A short description of the successful check

        Raises:
            ProxyUnreachableError: If the queue cannot be reached
        """
        pass


class MessageConsumer(ABC):
    """Abstract interface for reading messages from the inbound queue."""

    @abstractmethod
    def start(self) -> None:
        """Begin dispatching messages to the handler in the background."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """
        Stop accepting new messages and wait for in-flight ones to finish.
        """
        pass
