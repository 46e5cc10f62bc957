import logging

from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket, status

from kitten_server.exceptions import NoSessionError, StorageError
from kitten_server.manager import ConnectionManager
from kitten_server.models.dc_models import (
    DrawCardResponseModel,
    LeaderboardResponseModel,
    StartGameResponseModel,
    UserModel,
)
from kitten_server.services.game_session import SessionManager

game_router = APIRouter()


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


class GameServer:
    @staticmethod
    @game_router.post("/start-game", response_model=StartGameResponseModel)
    async def start_game(
        user: UserModel,
        session_manager: SessionManager = Depends(get_session_manager),
    ) -> StartGameResponseModel:
        """Start a new game or resume the existing one

        Args:
            user (UserModel): The player who starts the game

        Returns:
            StartGameResponseModel: The current deck and whether it was resumed
        """
        try:
            game = await session_manager.start_game(user.username)
        except StorageError:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error initializing deck",
            )
        return StartGameResponseModel(
            message="Resuming game" if game.resumed else "Game started",
            username=user.username,
            resumed=game.resumed,
            deck=game.deck,
        )

    @staticmethod
    @game_router.post("/draw-card", response_model=DrawCardResponseModel)
    async def draw_card(
        user: UserModel,
        session_manager: SessionManager = Depends(get_session_manager),
    ) -> DrawCardResponseModel:
        """Draw a card from the player's deck

        Args:
            user (UserModel): The player who draws

        Returns:
            DrawCardResponseModel: What was drawn and what it did
        """
        try:
            result = await session_manager.draw_card(user.username)
        except NoSessionError:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No game started for this user. Start a game first.",
            )
        except StorageError:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error drawing card",
            )
        return DrawCardResponseModel(username=user.username, **result.model_dump())

    @staticmethod
    @game_router.get("/leaderboard", response_model=LeaderboardResponseModel)
    async def get_leaderboard(
        session_manager: SessionManager = Depends(get_session_manager),
    ) -> LeaderboardResponseModel:
        try:
            entries = await session_manager.leaderboard()
        except StorageError:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error fetching leaderboard",
            )
        return LeaderboardResponseModel(leaderboard=entries)


class LeaderboardServer:
    @staticmethod
    @game_router.websocket("/ws")
    async def leaderboard_socket(websocket: WebSocket):
        """Push the leaderboard to a client until it disconnects."""
        hub: ConnectionManager = websocket.app.state.hub
        await websocket.accept()
        try:
            registered = await hub.register(websocket)
        except StorageError:
            logging.error("Error sending initial leaderboard data")
            await hub.unregister(websocket)
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
            return
        if not registered:
            return

        logging.info("WebSocket connection established")
        try:
            # Inbound frames, text or binary, carry nothing; reading only detects the close.
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    logging.info(f"WebSocket connection closed: {message.get('code')}")
                    break
        finally:
            await hub.unregister(websocket)
