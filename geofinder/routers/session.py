"""Device-facing endpoints: drive one device's current screen.

Every action answers with the screen state after the action, including
alerts raised while handling it.
"""

from typing import List, Type, TypeVar

from fastapi import APIRouter, HTTPException, status

from geofinder.controllers.ai_duel import AiDuelController
from geofinder.controllers.base import ScreenController, SessionStateError
from geofinder.controllers.main_menu import MainMenuController
from geofinder.controllers.round_game import GameController
from geofinder.manager import DeviceSession, device_manager
from geofinder.models.dc_models import (
    AppStateModel,
    GuessModel,
    LeaderboardEntryModel,
    NavigateModel,
    ScreenName,
    ScreenStateModel,
)

session_router = APIRouter(prefix="/devices/{device_id}")

ControllerT = TypeVar("ControllerT", bound=ScreenController)


def get_device(device_id: str) -> DeviceSession:
    try:
        return device_manager.get(device_id)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown device: {device_id}")


def get_controller(device: DeviceSession, kind: Type[ControllerT]) -> ControllerT:
    if not isinstance(device.controller, kind):
        current = device.screen.value if device.screen else "none"
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Action not available on screen {current}",
        )
    return device.controller


def conflict(e: SessionStateError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


class DeviceAPI:
    @staticmethod
    @session_router.post("/navigate", response_model=ScreenStateModel)
    async def navigate(device_id: str, request: NavigateModel):
        device = await device_manager.connect(device_id)
        await device.navigate(request.screen, request.prefetched_round)
        return device.view()

    @staticmethod
    @session_router.get("/screen", response_model=ScreenStateModel)
    async def get_screen(device_id: str):
        device = get_device(device_id)
        try:
            return device.view()
        except LookupError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    @staticmethod
    @session_router.post("/app-state", response_model=ScreenStateModel)
    async def set_app_state(device_id: str, request: AppStateModel):
        device = get_device(device_id)
        await device.set_app_state(request.state)
        return device.view()

    @staticmethod
    @session_router.delete("", status_code=status.HTTP_204_NO_CONTENT)
    async def disconnect(device_id: str):
        get_device(device_id)
        await device_manager.disconnect(device_id)


class RoundGameAPI:
    @staticmethod
    @session_router.put("/guess", response_model=ScreenStateModel)
    async def set_guess(device_id: str, request: GuessModel):
        device = get_device(device_id)
        if isinstance(device.controller, AiDuelController):
            device.controller.set_guess(request.guess)
        else:
            get_controller(device, GameController).set_guess(request.guess)
        return device.view()

    @staticmethod
    @session_router.post("/guess", response_model=ScreenStateModel)
    async def submit_guess(device_id: str, request: GuessModel):
        device = get_device(device_id)
        if isinstance(device.controller, AiDuelController):
            await device.controller.submit_guess(request.guess)
            return device.view()
        controller = get_controller(device, GameController)
        try:
            await controller.submit_guess(request.guess)
        except SessionStateError as e:
            raise conflict(e)
        return device.view()

    @staticmethod
    @session_router.post("/advance", response_model=ScreenStateModel)
    async def advance(device_id: str):
        device = get_device(device_id)
        try:
            await get_controller(device, GameController).advance()
        except SessionStateError as e:
            raise conflict(e)
        return device.view()

    @staticmethod
    @session_router.post("/continue", response_model=ScreenStateModel)
    async def continue_session(device_id: str):
        device = get_device(device_id)
        try:
            await get_controller(device, GameController).continue_session()
        except SessionStateError as e:
            raise conflict(e)
        return device.view()

    @staticmethod
    @session_router.post("/new-game", response_model=ScreenStateModel)
    async def new_game(device_id: str):
        device = get_device(device_id)
        try:
            await get_controller(device, GameController).new_game()
        except SessionStateError as e:
            raise conflict(e)
        return device.view()

    @staticmethod
    @session_router.post("/toggle-leaderboard", response_model=ScreenStateModel)
    async def toggle_leaderboard(device_id: str):
        device = get_device(device_id)
        get_controller(device, GameController).toggle_leaderboard()
        return device.view()

    @staticmethod
    @session_router.post("/retry", response_model=ScreenStateModel)
    async def retry(device_id: str):
        device = get_device(device_id)
        try:
            await get_controller(device, GameController).retry()
        except SessionStateError as e:
            raise conflict(e)
        return device.view()

    @staticmethod
    @session_router.post("/return-to-menu", response_model=ScreenStateModel)
    async def return_to_menu(device_id: str):
        device = get_device(device_id)
        if isinstance(device.controller, AiDuelController):
            await device.controller.return_to_menu()
            return device.view()
        try:
            await get_controller(device, GameController).return_to_menu()
        except SessionStateError as e:
            raise conflict(e)
        return device.view()


class AiDuelAPI:
    @staticmethod
    @session_router.post("/next-round", response_model=ScreenStateModel)
    async def next_round(device_id: str):
        device = get_device(device_id)
        try:
            get_controller(device, AiDuelController).next_round()
        except SessionStateError as e:
            raise conflict(e)
        return device.view()

    @staticmethod
    @session_router.post("/rematch", response_model=ScreenStateModel)
    async def rematch(device_id: str):
        device = get_device(device_id)
        await get_controller(device, AiDuelController).rematch()
        return device.view()


class MainMenuAPI:
    @staticmethod
    @session_router.post("/start-game", response_model=ScreenStateModel)
    async def start_game(device_id: str, screen: ScreenName = ScreenName.game):
        device = get_device(device_id)
        controller = get_controller(device, MainMenuController)
        if screen == ScreenName.game:
            await controller.start_game()
        elif screen == ScreenName.ai_duel:
            await controller.start_ai_game()
        elif screen == ScreenName.pano_game:
            await controller.start_pano_game()
        else:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Not a game screen: {screen.value}")
        return device.view()

    @staticmethod
    @session_router.get("/leaderboard", response_model=List[LeaderboardEntryModel])
    async def get_leaderboard(device_id: str):
        device = get_device(device_id)
        return await get_controller(device, MainMenuController).get_leaderboard()
