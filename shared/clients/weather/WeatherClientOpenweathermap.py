from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import ToolOpts


class WeatherClientOpenweathermap(ClientInterface):
    """Current weather from the OpenWeatherMap API."""

    def __init__(self, helper_config: HelperConfig, opts: ToolOpts):
        super().__init__(helper_config=helper_config, opts=opts)
        self._base_url = self.get_config_val("base_url", default="https://api.openweathermap.org")
        self._api_key = self.get_config_val("api_key")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "weather"

    def _get_engine_name(self) -> str:
        return "OpenWeatherMap"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[str]:
        return ["api_key"]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        # the api key is passed as "appid" query parameter
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_geocode(self, city: str) -> tuple[float, float]:
        """
        Resolve a city name to coordinates.

        Returns:
            tuple[float, float]: (latitude, longitude)

        Raises:
            ValueError: If the city is unknown.
        """
        response = await self.do_request(
            method="GET",
            endpoint="/geo/1.0/direct",
            params={"q": city, "limit": 1, "appid": self._api_key},
            raise_on_error=True,
        )
        results = response.json()
        if not results:
            raise ValueError(f"City '{city}' not found.")
        return results[0]["lat"], results[0]["lon"]

    async def do_fetch_current(self, lat: float, lon: float) -> dict:
        response = await self.do_request(
            method="GET",
            endpoint="/data/2.5/weather",
            params={"lat": lat, "lon": lon, "units": "metric", "appid": self._api_key},
            raise_on_error=True,
        )
        return response.json()
