import threading

from django.apps import AppConfig


class ApiConfig(AppConfig):
    name = "api"
    verbose_name = "Cartera"

    cartera_config = None
    _config_lock = threading.Lock()

    def get_cartera_config(self):
        """
        Configuracion de cartera, construida en la primera consulta: la
        resolucion por WSDL hace I/O de red y no debe frenar el arranque.
        """
        if self.cartera_config is None:
            from django.conf import settings

            from .services.cartera_config import CarteraConfig

            with self._config_lock:
                #* UNA SOLA CONFIGURACION POR PROCESO, COMPARTIDA SOLO LECTURA
                if self.cartera_config is None:
                    self.cartera_config = CarteraConfig.from_settings(getattr(settings, "CARTERA", {}))
        return self.cartera_config
