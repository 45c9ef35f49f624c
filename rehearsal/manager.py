from fastapi import WebSocket
from typing import List, Dict
import logging


class ConnectionManager:
    def __init__(self):
        self.active_connections: Dict[int, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, seat: int):
        """Accepts a player websocket and files it under its seat

        Args:
            websocket (WebSocket): Player connection
            seat (int): Seat the player is sitting at
        """
        await websocket.accept()
        if seat not in self.active_connections:
            self.active_connections[seat] = []
        self.active_connections[seat].append(websocket)
        logging.info(f"Player connected at seat {seat}")

    def disconnect(self, websocket: WebSocket, seat: int):
        """Forgets a player websocket

        Args:
            websocket (WebSocket): Player connection
            seat (int): Seat the connection was filed under
        """
        if seat in self.active_connections and websocket in self.active_connections[seat]:
            self.active_connections[seat].remove(websocket)
            # Clean up if there are no more connections for this seat
            if not self.active_connections[seat]:
                del self.active_connections[seat]
        logging.info(f"Player disconnected from seat {seat}")

    def connected_seats(self) -> List[int]:
        return sorted(self.active_connections)

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        await websocket.send_json(message)
