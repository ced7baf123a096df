import json

from server.core.tools.ToolInterface import ToolInterface
from shared.clients.weather.WeatherClientOpenweathermap import WeatherClientOpenweathermap


class WeatherTool(ToolInterface):
    name = "weather"
    description = (
        'Get weather information for any city. When asked about weather for ANY city, '
        'you MUST call the "weather" tool with that city name.'
    )

    def __init__(self, client: WeatherClientOpenweathermap):
        self.client = client

    def get_parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "city": {"type": "string", "description": "Name of the city to find the weather for."},
            },
            "required": ["city"],
        }

    async def do_run(self, arguments: dict) -> str:
        city = str(arguments.get("city") or "").strip()
        if not city:
            return "Error: the 'city' argument is required."
        lat, lon = await self.client.do_geocode(city)
        current = await self.client.do_fetch_current(lat, lon)
        main = current.get("main") or {}
        return json.dumps({
            "city": city,
            "temperature": main.get("temp"),
            "feelsLike": main.get("feels_like"),
            "minTemperature": main.get("temp_min"),
            "maxTemperature": main.get("temp_max"),
            "humidity": main.get("humidity"),
            "units": "celsius",
            "weather": [w.get("description") for w in current.get("weather") or []],
        })
