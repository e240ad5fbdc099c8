from abc import ABC, abstractmethod
from typing import Any


class Agent(ABC):
    """
    Abstract base class for all Cacho bots.
    Agents must implement choose_action(view), which receives a seat-specific view from
    GameEngine.get_view() and returns an action (PlaceBet, Doubt, SpotOn or Salpicon).
    """

    @abstractmethod
    def choose_action(self, view: Any):
        """
        Given a seat-specific view, return the next action to take.
        Args:
            view (dict): Keys 'player_index', 'state', 'my_dice' and 'is_blind'.
        Returns:
            Action: The action to take.
        """
        raise NotImplementedError
