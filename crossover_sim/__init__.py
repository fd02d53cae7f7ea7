"""crossover_sim: Individual-based border demography model.

A stochastic, continuous-time population of agents split into
native-born, legally admitted, illegally admitted and pending-entry
(outsider) groups:
  - Aging with a bounded lifespan distribution and animated despawn
  - Group-specific fertility derived from total fertility rates
  - Annual legal/illegal admission trials for outsiders
  - Outsider pool replenished toward a target under a hard capacity ceiling
  - Demographic statistics with one-time "minority crossover" detection
"""

__version__ = "0.1.0"
