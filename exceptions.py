"""
Auction error types.

Every error the auction flow reports to the operator derives from
AuctionError, so the bot can show ``str(error)`` for all of them.
"""

from config import MESSAGES


class AuctionError(Exception):
    """Base class for operator-facing auction failures"""


# ==================== SALE PRECONDITIONS ====================


class TeamNotFound(AuctionError):
    def __init__(self, team_id: str):
        super().__init__(f"Selected team doesn't exist: {team_id}")
        self.team_id = team_id


class OverseasLimitExceeded(AuctionError):
    def __init__(self, team_name: str, limit: int):
        super().__init__(
            f"{team_name} already has {limit} overseas players. Cannot add more."
        )
        self.team_name = team_name
        self.limit = limit


class InsufficientBudget(AuctionError):
    def __init__(self, team_name: str, budget: int, price: int):
        super().__init__(f"{team_name} doesn't have enough budget for this player")
        self.team_name = team_name
        self.budget = budget
        self.price = price


class PlayerNotFound(AuctionError):
    def __init__(self, player_id: str):
        super().__init__(f"Player doesn't exist: {player_id}")
        self.player_id = player_id


class PlayerAlreadySold(AuctionError):
    def __init__(self, player_name: str, team_id: str):
        super().__init__(f"{player_name} is already sold to {team_id}")
        self.player_name = player_name
        self.team_id = team_id


# ==================== FLOW ERRORS ====================


class EmptyQueue(AuctionError):
    def __init__(self):
        super().__init__("No players available")


class BiddingNotOpen(AuctionError):
    def __init__(self):
        super().__init__("Bidding has not started for this player. Use /open first.")


class PlayerAlreadyResolved(AuctionError):
    def __init__(self, player_name: str, status: str):
        super().__init__(f"{player_name} was already marked {status} this session")
        self.player_name = player_name
        self.status = status


class NoTeamSelected(AuctionError):
    def __init__(self):
        super().__init__(MESSAGES["no_team_selected"])


class NoPendingAction(AuctionError):
    def __init__(self):
        super().__init__("Nothing to confirm. Use /sold or /unsold first.")


class StaleConfirmation(AuctionError):
    def __init__(self):
        super().__init__("This confirmation is out of date. Another action was staged since.")


# ==================== STORE ====================


class RemoteUnavailable(AuctionError):
    """The document store could not complete a read or write"""

    def __init__(self, operation: str, cause: Exception):
        super().__init__(f"Store error during {operation}: {cause}")
        self.operation = operation
        self.cause = cause
