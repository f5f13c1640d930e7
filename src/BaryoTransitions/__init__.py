"""BaryoTransitions: electroweak phase transitions and baryogenesis for BSM scalar potentials."""

from .config import (ConfigurationError, InputError, RunConfig, MinimizerConfig, FinderConfig,
                     TransportConfig, SpeciesParameters, load_config, config_from_dict)

from .helper_functions import (clamp_val, boxAround, IntegrationError, gradientFunction,
                               hessianFunction, symmetricEigvals)

from .finiteT import Jb, Jf, Jb_exact, Jf_exact, Jb_low, Jf_low, Jb_high, Jf_high

from .models import (PotentialModel, LandauGinzburgModel, LandauGinzburgParameters,
                     VectorDarkMatterModel, VDMParameters, get_model, V_EW)

from .minimizer import (MinimizationStatus, MinimizationResult, ConvergenceFailure,
                        GradientBackend, SimplexBackend, EvolutionaryBackend,
                        findLocalMinimum, findLocalMinimumWithRetries, findApproxLocalMin,
                        findGlobalMinimum)

from .transitionFinder import (ScanState, TransitionStatus, PhaseTransitionPoint, PTFinder,
                               findCriticalTemperature)

from .transportSolver import EtaStatus, EtaResult, TransportProfile, TransportSolver, calcEta

__version__ = "0.1.0"
