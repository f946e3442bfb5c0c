"""Weather client: current conditions, forecasts, place search and favorite cities."""
