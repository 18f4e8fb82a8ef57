import re
import yaml

class MACAddressYamlHandler:
    """Keeps MAC addresses in seed and output YAML as plain strings."""
    _MAC_PATTERN = re.compile(r'^(?:[0-9A-Fa-f]{2}[:-]){5}(?:[0-9A-Fa-f]{2})$')

    @classmethod
    def create_loader(cls):
        """Create a YAML loader that never reads a MAC address as a sexagesimal int."""
        class _CustomLoader(yaml.SafeLoader):
            pass

        # copy so the resolvers of yaml.SafeLoader itself stay untouched
        _CustomLoader.yaml_implicit_resolvers = {
            key: list(resolvers) for key, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
        }
        for first_char in '0123456789ABCDEFabcdef':
            _CustomLoader.yaml_implicit_resolvers.setdefault(first_char, []).insert(
                0, ('tag:yaml.org,2002:str', cls._MAC_PATTERN))
        return _CustomLoader

    @classmethod
    def create_dumper(cls):
        """Create a YAML dumper that writes MAC addresses without quotes."""
        class _CustomDumper(yaml.SafeDumper):
            def choose_scalar_style(self):
                if hasattr(self, 'event') and isinstance(getattr(self.event, 'value', None), str) \
                        and cls._MAC_PATTERN.match(self.event.value):
                    self.event.implicit = (True, self.event.implicit[1])
                    return ''
                return super().choose_scalar_style()

        _CustomDumper.add_representer(str, _CustomDumper.represent_str)
        return _CustomDumper


CustomYamlLoader = MACAddressYamlHandler.create_loader()
CustomYamlDumper = MACAddressYamlHandler.create_dumper()


def dump_yaml(data, stream=None):
    return yaml.dump(data, stream, Dumper=CustomYamlDumper, default_flow_style=False, sort_keys=False)
