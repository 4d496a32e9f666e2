# global_parameters.py

COMB_UNREACHED_POLICIES = ("reseed", "raise", "ignore")


class GlobalParameters:
    def __init__(self, initial_params=None):
        """
        all parameters are defined with underscore, _, instead of spaces
        """
        # Use a dictionary to store all parameters
        self._params = {
            "degree": 4,  # Vectors per tangent space (N)
            # Representation of the input field:
            #   "raw"        – N explicit vectors per face.
            #   "power"      – a single complex number u = z^N per face.
            #   "polyvector" – N complex polynomial coefficients per face.
            "field_type": "raw",
            "comb_seed_face": 0,
            # What combing does with faces the seed cannot reach (forced
            # seams or a disconnected dual graph):
            #   "reseed" – start a fresh traversal in every unreached region.
            #   "raise"  – raise DisconnectedRegionError.
            #   "ignore" – leave them at zero vectors and rotation 0.
            "comb_unreached_policy": "reseed",
            # Misalignments closer than this are treated as a tie and broken
            # by the smaller signed rotation, then the smaller matching.
            "matching_tie_tolerance": 1e-12,
            "connection_tolerance": 1e-9,
            "validate_topology": True,
        }
        # Load initial parameters if provided
        if initial_params:
            self.update(initial_params)

    def __getattr__(self, name):
        """Attribute access for known parameter keys."""
        params = self.__dict__.get("_params")
        if params is not None and name in params:
            return params[name]
        raise AttributeError(
            f"{type(self).__name__!s} object has no attribute {name!r}"
        )

    def __setattr__(self, name, value):
        """Attribute assignment for known parameter keys."""
        if name == "_params":
            object.__setattr__(self, name, value)
            return
        params = self.__dict__.get("_params")
        if params is not None and name in params:
            params[name] = value
            return
        object.__setattr__(self, name, value)

    def get(self, key, default=None):
        """Retrieve a parameter value, or return a default if not found."""
        return self._params.get(key, default)

    def set(self, key, value):
        """Set or update a parameter."""
        self._params[key] = value

    def update(self, params):
        """Update multiple parameters at once."""
        self._params.update(params)

    def __contains__(self, key):
        """Check if a parameter exists."""
        return key in self._params

    def __repr__(self):
        """String representation for debugging."""
        return f"GlobalParameters({self._params})"

    def to_dict(self):
        """Convert the parameters to a dictionary for serialization."""
        return self._params
