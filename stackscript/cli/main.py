def main():
    # config profiles are the first thing that need to be loaded (especially before stackscript.config!)
    from .profiles import set_and_remove_profile_from_sys_argv

    set_and_remove_profile_from_sys_argv()

    from .stackscript import stackscript

    stackscript()


if __name__ == "__main__":
    main()
