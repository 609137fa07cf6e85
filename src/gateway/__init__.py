from src.gateway.iframe_gateway import GatewayResponse, IframeGateway, envelope_for, is_allowed_origin

__all__ = ["GatewayResponse", "IframeGateway", "envelope_for", "is_allowed_origin"]
